from datetime import datetime, timedelta

import pytest

from salesflow.core.errors import (
    DuplicateLink, Forbidden, IllegalTransition, InvalidQuantity, NotFound, PreconditionFailed,
)
from salesflow.services import production_orders, sales_orders
from salesflow.services.loaders import load_production_order, load_sales_order
from salesflow.workflow.enums import (
    ApprovalStatus, LineStatus, MaterialReadiness, ProductionStatus, SalesOrderStatus,
)


async def create_scheduled(db, actors, order_id, **plan):
    created = await production_orders.create_production_order(db, order_id, actors["planner"], **plan)
    production_id = created.entity.id
    await production_orders.schedule(db, production_id, actors["planner"], supervisor_id=actors["worker"].id)
    return production_id


@pytest.mark.asyncio
async def test_release_moves_order_into_production(db, actors, confirmed_order_id):
    result = await production_orders.create_production_order(db, confirmed_order_id, actors["planner"])
    production = result.entity

    assert production.status == ProductionStatus.PENDING.value
    assert production.production_no.startswith("MO-")
    assert production.material_readiness_status == MaterialReadiness.PENDING_ANALYSIS.value
    assert sorted(i.ordered_quantity for i in production.items) == [2, 25]
    assert result.fully_applied
    assert result.propagation[0].to_status == SalesOrderStatus.IN_PRODUCTION.value

    order = await load_sales_order(db, confirmed_order_id)
    assert order.status == SalesOrderStatus.IN_PRODUCTION.value
    assert all(line.production_status == LineStatus.IN_PRODUCTION.value for line in order.lines)
    assert order.history[-1].meta_data["source_no"] == production.production_no

    with pytest.raises(DuplicateLink):
        await production_orders.create_production_order(db, confirmed_order_id, actors["planner"])


@pytest.mark.asyncio
async def test_release_requires_confirmed_order(db, actors, won_project_id):
    order = await sales_orders.create_order_from_project(db, won_project_id, actors["sales"])
    order_id = order.id

    with pytest.raises(Forbidden) as exc:
        await production_orders.create_production_order(db, order_id, actors["worker"])
    assert exc.value.reason == "role_not_permitted"

    # 订单还没指派计划员
    with pytest.raises(Forbidden) as exc:
        await production_orders.create_production_order(db, order_id, actors["planner"])
    assert exc.value.reason == "ownership_violation"

    order = await sales_orders.assign_planner(db, order_id, actors["sales"], actors["planner"].id)
    assert order.planner_id == actors["planner"].id

    with pytest.raises(PreconditionFailed) as exc:
        await production_orders.create_production_order(db, order_id, actors["planner"])
    assert exc.value.condition == "order_not_confirmed"

    await sales_orders.approve(db, order_id, actors["manager"], ApprovalStatus.APPROVED)
    result = await production_orders.create_production_order(db, order_id, actors["planner"])
    assert result.entity.sales_order_id == order_id


@pytest.mark.asyncio
async def test_schedule_rejects_inverted_plan(db, actors, confirmed_order_id):
    created = await production_orders.create_production_order(db, confirmed_order_id, actors["planner"])
    production_id = created.entity.id
    start = datetime(2026, 3, 10)

    with pytest.raises(PreconditionFailed) as exc:
        await production_orders.schedule(
            db, production_id, actors["planner"], planned_start=start, planned_end=start - timedelta(days=1)
        )
    assert exc.value.condition == "schedule_invalid"

    production = await load_production_order(db, production_id)
    assert production.status == ProductionStatus.PENDING.value

    result = await production_orders.schedule(
        db, production_id, actors["planner"], planned_start=start, planned_end=start + timedelta(days=20)
    )
    assert result.to_status == ProductionStatus.SCHEDULED.value
    assert result.entity.planned_end == datetime(2026, 3, 30)


@pytest.mark.asyncio
async def test_delay_pause_resume_and_reschedule(db, actors, confirmed_order_id):
    production_id = await create_scheduled(db, actors, confirmed_order_id)

    with pytest.raises(PreconditionFailed) as exc:
        await production_orders.delay(db, production_id, actors["planner"], "")
    assert exc.value.condition == "reason_required"

    with pytest.raises(Forbidden):
        await production_orders.delay(db, production_id, actors["worker"], "缺料")

    result = await production_orders.delay(db, production_id, actors["planner"], "主轴到货延迟")
    assert result.to_status == ProductionStatus.DELAYED.value
    assert result.entity.delay_reason == "主轴到货延迟"

    new_start = datetime.utcnow() + timedelta(days=3)
    result = await production_orders.reschedule(
        db, production_id, actors["planner"], planned_start=new_start, planned_end=new_start + timedelta(days=10)
    )
    assert result.to_status == ProductionStatus.SCHEDULED.value
    assert result.entity.delay_reason is None

    await production_orders.start(db, production_id, actors["worker"])
    result = await production_orders.pause(db, production_id, actors["worker"], "设备检修")
    assert result.to_status == ProductionStatus.PAUSED.value
    result = await production_orders.resume(db, production_id, actors["worker"])
    assert result.to_status == ProductionStatus.IN_PRODUCTION.value
    assert result.entity.pause_reason is None

    await production_orders.delay(db, production_id, actors["planner"], "返工")
    result = await production_orders.resume(db, production_id, actors["worker"])
    assert result.to_status == ProductionStatus.IN_PRODUCTION.value

    with pytest.raises(IllegalTransition):
        await production_orders.reschedule(db, production_id, actors["planner"])


@pytest.mark.asyncio
async def test_unrelated_worker_is_rejected(db, actors, confirmed_order_id):
    created = await production_orders.create_production_order(db, confirmed_order_id, actors["planner"])
    production_id = created.entity.id
    await production_orders.schedule(db, production_id, actors["planner"])

    # 未指定主管，车间工人与生产单无归属关系
    with pytest.raises(Forbidden) as exc:
        await production_orders.start(db, production_id, actors["worker"])
    assert exc.value.reason == "ownership_violation"

    result = await production_orders.start(db, production_id, actors["planner"])
    assert result.entity.actual_start is not None


@pytest.mark.asyncio
async def test_qc_rework_loop_and_system_edges(db, actors, confirmed_order_id):
    production_id = await create_scheduled(db, actors, confirmed_order_id)
    await production_orders.start(db, production_id, actors["worker"])
    await production_orders.submit_for_qc(db, production_id, actors["worker"])

    # 未指派的质检员不能判定
    with pytest.raises(Forbidden) as exc:
        await production_orders.fail_qc(db, production_id, actors["qa"], "尺寸超差")
    assert exc.value.reason == "ownership_violation"

    with pytest.raises(PreconditionFailed) as exc:
        await production_orders.assign_inspector(db, production_id, actors["planner"], actors["worker"].id)
    assert exc.value.condition == "assignee_not_inspector"
    with pytest.raises(Forbidden) as exc:
        await production_orders.assign_inspector(db, production_id, actors["qa"], actors["qa"].id)
    assert exc.value.reason == "role_not_permitted"
    production = await production_orders.assign_inspector(db, production_id, actors["planner"], actors["qa"].id)
    assert production.history[-1].meta_data["inspector_id"] == actors["qa"].id

    with pytest.raises(PreconditionFailed):
        await production_orders.fail_qc(db, production_id, actors["qa"], " ")

    result = await production_orders.fail_qc(db, production_id, actors["qa"], "尺寸超差")
    assert result.to_status == ProductionStatus.IN_PRODUCTION.value
    assert result.entity.inspector_id == actors["qa"].id
    assert result.propagation == []

    await production_orders.submit_for_qc(db, production_id, actors["worker"])
    result = await production_orders.pass_qc(db, production_id, actors["qa"], notes="复检合格")
    assert result.entity.qc_notes == "复检合格"
    assert result.propagation[0].to_status == SalesOrderStatus.QC_PASSED.value

    # 待发货/已发货只由合同订单同步过来
    with pytest.raises(Forbidden) as exc:
        await production_orders.mark_ready_to_ship(db, production_id, actors["planner"])
    assert exc.value.reason == "role_not_permitted"


@pytest.mark.asyncio
async def test_mark_overdue_delays_as_system(db, actors, confirmed_order_id):
    now = datetime.utcnow()
    production_id = await create_scheduled(
        db, actors, confirmed_order_id,
        planned_start=now - timedelta(days=10), planned_end=now - timedelta(days=1),
    )
    production = await load_production_order(db, production_id)
    production_no = production.production_no

    assert await production_orders.mark_overdue(db) == [production_no]

    production = await load_production_order(db, production_id)
    assert production.status == ProductionStatus.DELAYED.value
    assert production.history[-1].actor_role == "System"
    assert production.history[-1].meta_data["reason"].startswith("超过计划完成日期")

    assert await production_orders.mark_overdue(db) == []


@pytest.mark.asyncio
async def test_progress_updates(db, actors, confirmed_order_id):
    production_id = await create_scheduled(db, actors, confirmed_order_id)
    await production_orders.start(db, production_id, actors["worker"])
    production = await load_production_order(db, production_id)
    big = next(i.id for i in production.items if i.ordered_quantity == 25)

    production = await production_orders.update_progress(
        db, production_id, actors["worker"], [{"item_id": big, "produced_quantity": 10, "qualified_quantity": 9}]
    )
    assert production.progress == 37

    with pytest.raises(InvalidQuantity):
        await production_orders.update_progress(db, production_id, actors["worker"], [{"item_id": big, "produced_quantity": 26}])
    with pytest.raises(InvalidQuantity):
        await production_orders.update_progress(
            db, production_id, actors["worker"], [{"item_id": big, "produced_quantity": 5, "qualified_quantity": 6}]
        )
    with pytest.raises(InvalidQuantity):
        await production_orders.update_progress(db, production_id, actors["worker"], [], progress=120)
    with pytest.raises(Forbidden):
        await production_orders.update_progress(db, production_id, actors["qa"], [], progress=50)

    production = await production_orders.update_progress(db, production_id, actors["worker"], [], progress=80)
    assert production.progress == 80
    assert next(i for i in production.items if i.id == big).qualified_quantity == 9


@pytest.mark.asyncio
async def test_material_readiness(db, actors, confirmed_order_id):
    created = await production_orders.create_production_order(db, confirmed_order_id, actors["planner"])
    production_id = created.entity.id

    production = await production_orders.update_material_readiness(
        db, production_id, actors["planner"], MaterialReadiness.READY, notes="齐套"
    )
    assert production.material_readiness_status == MaterialReadiness.READY.value
    assert production.history[-1].meta_data["from"] == MaterialReadiness.PENDING_ANALYSIS.value

    with pytest.raises(Forbidden):
        await production_orders.update_material_readiness(db, production_id, actors["worker"], MaterialReadiness.PARTIAL)


@pytest.mark.asyncio
async def test_cancel_and_admin_delete(db, actors, confirmed_order_id):
    created = await production_orders.create_production_order(db, confirmed_order_id, actors["planner"])
    production_id = created.entity.id

    result = await production_orders.cancel(db, production_id, actors["planner"], "客户变更型号")
    assert result.to_status == ProductionStatus.CANCELLED.value

    with pytest.raises(Forbidden):
        await production_orders.delete_production_order(db, production_id, actors["planner"])

    await production_orders.delete_production_order(db, production_id, actors["admin"])
    with pytest.raises(NotFound):
        await load_production_order(db, production_id)


@pytest.mark.asyncio
async def test_list_production_orders(db, actors, confirmed_order_id):
    await production_orders.create_production_order(db, confirmed_order_id, actors["planner"])

    page = await production_orders.list_production_orders(db, sales_order_id=confirmed_order_id)
    assert page["total"] == 1
    page = await production_orders.list_production_orders(db, status=ProductionStatus.SCHEDULED.value)
    assert page["total"] == 0


@pytest.mark.asyncio
async def test_release_by_planner_of_another_order_is_rejected(db, actors, won_project_id, confirmed_order_id):
    order = await sales_orders.create_order_from_project(db, won_project_id, actors["sales"])
    order_id = order.id
    await sales_orders.approve(db, order_id, actors["manager"], ApprovalStatus.APPROVED)

    with pytest.raises(Forbidden) as exc:
        await production_orders.create_production_order(db, order_id, actors["planner"])
    assert exc.value.reason == "ownership_violation"
    order = await load_sales_order(db, order_id)
    assert order.status == SalesOrderStatus.CONFIRMED.value
    assert order.planner_id is None

    # 销售经理可直接下达
    result = await production_orders.create_production_order(db, order_id, actors["manager"])
    assert result.entity.sales_order_id == order_id
