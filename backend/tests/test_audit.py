from decimal import Decimal

import pytest

from salesflow.core.errors import AuditTrailViolation, NotFound
from salesflow.services import projects, sales_orders
from salesflow.services.loaders import load_project, load_sales_order
from salesflow.workflow.enums import SalesOrderStatus


@pytest.mark.asyncio
async def test_payment_records_cannot_be_modified(db, actors, confirmed_order_id):
    order = await sales_orders.record_payment(db, confirmed_order_id, actors["sales"], 500)

    order.payment_records[0].amount = Decimal("5000")
    with pytest.raises(AuditTrailViolation):
        await db.commit()
    await db.rollback()

    order = await load_sales_order(db, confirmed_order_id)
    assert order.payment_records[0].amount == Decimal("500")
    assert order.paid_amount == Decimal("500")


@pytest.mark.asyncio
async def test_history_entries_cannot_be_modified_or_deleted(db, actors):
    project = await projects.create_project(db, actors["sales"], name="A", client_name="甲")
    project_id = project.id

    project.history[0].description = "改写历史"
    with pytest.raises(AuditTrailViolation):
        await db.commit()
    await db.rollback()

    project = await load_project(db, project_id)
    await db.delete(project.history[0])
    with pytest.raises(AuditTrailViolation):
        await db.commit()
    await db.rollback()

    project = await load_project(db, project_id)
    assert [h.operation for h in project.history] == ["create"]
    assert project.history[0].description == "创建项目 A"


@pytest.mark.asyncio
async def test_history_sequence_is_contiguous(db, actors, confirmed_order_id):
    await sales_orders.record_payment(db, confirmed_order_id, actors["sales"], 100)
    await sales_orders.record_payment(db, confirmed_order_id, actors["sales"], 200)

    order = await load_sales_order(db, confirmed_order_id)
    assert [h.seq for h in order.history] == list(range(1, len(order.history) + 1))
    assert Decimal(order.history[-1].meta_data["paid_amount"]) == Decimal("300")


@pytest.mark.asyncio
async def test_deleting_order_cascades_append_only_records(db, actors, confirmed_order_id):
    await sales_orders.record_payment(db, confirmed_order_id, actors["sales"], 500)
    result = await sales_orders.cancel(db, confirmed_order_id, actors["sales"], "客户撤单")
    assert result.to_status == SalesOrderStatus.CANCELLED.value

    await sales_orders.delete_order(db, confirmed_order_id, actors["admin"])
    with pytest.raises(NotFound):
        await load_sales_order(db, confirmed_order_id)
