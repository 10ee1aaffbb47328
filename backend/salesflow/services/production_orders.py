"""
生产订单流程

待排产 → 已排产 → 生产中 → 待质检 → 质检通过 → 待发货 → 已发货 → 完成
旁支：延期 / 暂停 / 取消。质检通过同步合同订单，发货由合同订单同步过来。
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.config import settings
from salesflow.core.errors import (
    DuplicateLink, IllegalTransition, InvalidQuantity, PreconditionFailed, WorkflowError,
)
from salesflow.core.logging_config import get_logger
from salesflow.models import ProductionItem, ProductionOrder
from salesflow.services.loaders import load_production_order, load_sales_order, load_user
from salesflow.services.propagation import TransitionResult, run_propagations
from salesflow.services.sequencing import PREFIXES, next_number, sequence_key
from salesflow.services.transitions import run_operation, run_transition
from salesflow.services.unit_of_work import write_scope
from salesflow.workflow.actor import SYSTEM_ACTOR, Actor
from salesflow.workflow.audit import append_history
from salesflow.workflow.enums import (
    ApprovalStatus, EntityType, MaterialReadiness, ProductionStatus, Role, SalesOrderStatus,
)
from salesflow.workflow.graphs import PLANNING, WORKSHOP, qa_inspector
from salesflow.workflow.guard import Propagation
from salesflow.workflow.ownership import ensure_authorized, ensure_role
from salesflow.workflow.pricing import to_decimal

logger = get_logger(__name__)

PRODUCTION = EntityType.PRODUCTION_ORDER

PROGRESS_STAGES = (
    ProductionStatus.SCHEDULED,
    ProductionStatus.IN_PRODUCTION,
    ProductionStatus.PAUSED,
    ProductionStatus.DELAYED,
    ProductionStatus.AWAITING_QC,
)
OPEN_STAGES = PROGRESS_STAGES + (ProductionStatus.PENDING, ProductionStatus.QC_PASSED)
OVERDUE_STAGES = (ProductionStatus.SCHEDULED, ProductionStatus.IN_PRODUCTION)
DELETABLE = (ProductionStatus.PENDING, ProductionStatus.CANCELLED)
INSPECTABLE = (ProductionStatus.PENDING,) + PROGRESS_STAGES


def _plan(planned_start: Optional[datetime], planned_end: Optional[datetime]):
    start = planned_start or datetime.utcnow()
    end = planned_end or start + timedelta(days=settings.PRODUCTION_LEAD_DAYS)
    if end < start:
        raise PreconditionFailed("schedule_invalid", "计划完成日期早于计划开始日期")
    return start, end


async def create_production_order(
    db: AsyncSession,
    sales_order_id: int,
    actor: Actor,
    *,
    planned_start: Optional[datetime] = None,
    planned_end: Optional[datetime] = None,
    priority: str = "Normal",
    notes: Optional[str] = None,
) -> TransitionResult:
    """
    由合同订单下达生产

    下达人须与订单有归属关系（通常是订单指派的生产计划员，销售经理整体放行）。
    前置条件：订单已确认且审批通过；配置了预付款比例时已收款达到比例；每个订单只能下达一次。
    生产单提交后再把合同订单推进到“生产中”（传播）。
    """
    roles = PLANNING | {Role.SALES_MANAGER}
    ensure_role(actor, roles, "下达生产订单")
    prefix = PREFIXES["production_order"]

    async with write_scope(db, (EntityType.SALES_ORDER, sales_order_id), sequence_key(prefix)):
        order = await load_sales_order(db, sales_order_id, for_update=True)
        ensure_authorized(actor, order, "下达生产订单", roles)

        existing = await db.execute(
            select(ProductionOrder.production_no).where(ProductionOrder.sales_order_id == order.id)
        )
        existing_no = existing.scalar_one_or_none()
        if existing_no:
            raise DuplicateLink(
                f"订单 {order.order_no} 已下达生产单 {existing_no}",
                {"order_no": order.order_no, "production_no": existing_no},
            )
        if order.status != SalesOrderStatus.CONFIRMED.value:
            raise PreconditionFailed("order_not_confirmed", f"订单 {order.order_no} 当前状态 {order.status}，不能下达生产")
        if order.approval_status != ApprovalStatus.APPROVED.value:
            raise PreconditionFailed("approval_not_approved")

        ratio = to_decimal(settings.PRODUCTION_MIN_DEPOSIT_RATIO)
        if ratio > 0 and to_decimal(order.paid_amount) < to_decimal(order.total_amount) * ratio:
            raise PreconditionFailed(
                "deposit_not_received",
                f"预付款未到账：已收 ¥{order.paid_amount}，需至少 {ratio * 100}%",
            )

        start, end = _plan(planned_start, planned_end)
        production = ProductionOrder(
            production_no=await next_number(db, ProductionOrder.production_no, prefix),
            sales_order_id=order.id,
            order_snapshot={
                "order_no": order.order_no,
                "project_no": order.project_snapshot.get("project_no"),
                "project_name": order.project_snapshot.get("name"),
                "client_name": order.project_snapshot.get("client_name"),
            },
            status=ProductionStatus.PENDING.value,
            priority=priority,
            planned_start=start,
            planned_end=end,
            progress=0,
            material_readiness_status=MaterialReadiness.PENDING_ANALYSIS.value,
            notes=notes,
            created_by=actor.id,
            items=[
                ProductionItem(
                    sales_order_line_id=line.id,
                    item_code=line.item_code,
                    description=line.description,
                    ordered_quantity=line.quantity,
                )
                for line in order.lines
            ],
            history=[],
        )
        append_history(
            production, "create", actor, f"由订单 {order.order_no} 下达",
            to_status=ProductionStatus.PENDING,
            metadata={"order_no": order.order_no},
        )
        db.add(production)
    production_id = production.id
    logger.info(f"🏭 订单 {production.order_snapshot['order_no']} 下达生产单 {production.production_no}")

    propagation = await run_propagations(
        db, production, [Propagation(EntityType.SALES_ORDER, "start_production")]
    )
    production = await load_production_order(db, production_id)
    return TransitionResult(production, None, production.status, propagation)


async def schedule(
    db: AsyncSession,
    production_id: int,
    actor: Actor,
    *,
    planned_start: Optional[datetime] = None,
    planned_end: Optional[datetime] = None,
    supervisor_id: Optional[int] = None,
) -> TransitionResult:
    if supervisor_id is not None:
        await load_user(db, supervisor_id)

    def mutate(production, context):
        production.planned_start, production.planned_end = _plan(
            planned_start or production.planned_start, planned_end or production.planned_end
        )
        if supervisor_id is not None:
            production.supervisor_id = supervisor_id
        return {
            "planned_start": production.planned_start.isoformat(),
            "planned_end": production.planned_end.isoformat(),
            "supervisor_id": production.supervisor_id,
        }

    return await run_transition(db, PRODUCTION, production_id, "schedule", actor, mutate=mutate)


async def assign_inspector(db: AsyncSession, production_id: int, actor: Actor, inspector_id: int):
    """指派质检员，质检通过/不合格只能由其本人判定"""
    inspector = await load_user(db, inspector_id)

    def mutate(production, context):
        previous = production.inspector_id
        production.inspector_id = inspector.id
        return {"inspector_id": inspector.id, "inspector_name": inspector.display_name, "previous": previous}

    return await run_operation(
        db, PRODUCTION, production_id, "assign_inspector", actor,
        label="指派质检员",
        roles=PLANNING,
        allowed_statuses=INSPECTABLE,
        context={"engineer": inspector, "description": f"指派质检员：{inspector.display_name}"},
        preconditions=(qa_inspector,),
        mutate=mutate,
    )


async def start(db: AsyncSession, production_id: int, actor: Actor) -> TransitionResult:
    def mutate(production, context):
        if production.actual_start is None:
            production.actual_start = datetime.utcnow()

    return await run_transition(db, PRODUCTION, production_id, "start", actor, mutate=mutate)


async def submit_for_qc(db: AsyncSession, production_id: int, actor: Actor) -> TransitionResult:
    return await run_transition(db, PRODUCTION, production_id, "submit_for_qc", actor)


async def pass_qc(db: AsyncSession, production_id: int, actor: Actor, notes: Optional[str] = None) -> TransitionResult:
    def mutate(production, context):
        production.qc_notes = notes
        production.progress = 100

    return await run_transition(
        db, PRODUCTION, production_id, "pass_qc", actor, mutate=mutate, metadata={"notes": notes} if notes else None
    )


async def fail_qc(db: AsyncSession, production_id: int, actor: Actor, reason: str) -> TransitionResult:
    def mutate(production, context):
        production.qc_notes = reason

    return await run_transition(
        db, PRODUCTION, production_id, "fail_qc", actor,
        context={"reason": reason}, mutate=mutate,
        description=f"质检不合格：{reason}", metadata={"reason": reason},
    )


async def mark_ready_to_ship(db: AsyncSession, production_id: int, actor: Actor) -> TransitionResult:
    return await run_transition(db, PRODUCTION, production_id, "mark_ready_to_ship", actor)


async def ship(db: AsyncSession, production_id: int, actor: Actor) -> TransitionResult:
    return await run_transition(db, PRODUCTION, production_id, "ship", actor)


async def complete(db: AsyncSession, production_id: int, actor: Actor) -> TransitionResult:
    def mutate(production, context):
        if production.actual_end is None:
            production.actual_end = datetime.utcnow()

    return await run_transition(db, PRODUCTION, production_id, "complete", actor, mutate=mutate)


async def delay(
    db: AsyncSession, production_id: int, actor: Actor, reason: str, authorize: bool = True
) -> TransitionResult:
    def mutate(production, context):
        production.delay_reason = reason

    return await run_transition(
        db, PRODUCTION, production_id, "delay", actor,
        context={"reason": reason}, mutate=mutate, authorize=authorize,
        description=f"延期：{reason}", metadata={"reason": reason},
    )


async def pause(db: AsyncSession, production_id: int, actor: Actor, reason: str) -> TransitionResult:
    def mutate(production, context):
        production.pause_reason = reason

    return await run_transition(
        db, PRODUCTION, production_id, "pause", actor,
        context={"reason": reason}, mutate=mutate,
        description=f"暂停：{reason}", metadata={"reason": reason},
    )


async def resume(db: AsyncSession, production_id: int, actor: Actor) -> TransitionResult:
    def mutate(production, context):
        production.pause_reason = None
        if production.actual_start is None:
            production.actual_start = datetime.utcnow()

    return await run_transition(db, PRODUCTION, production_id, "resume", actor, mutate=mutate)


async def reschedule(
    db: AsyncSession,
    production_id: int,
    actor: Actor,
    *,
    planned_start: Optional[datetime] = None,
    planned_end: Optional[datetime] = None,
) -> TransitionResult:
    def mutate(production, context):
        production.planned_start, production.planned_end = _plan(planned_start, planned_end)
        production.delay_reason = None
        return {"planned_end": production.planned_end.isoformat()}

    return await run_transition(db, PRODUCTION, production_id, "reschedule", actor, mutate=mutate)


async def cancel(db: AsyncSession, production_id: int, actor: Actor, reason: str) -> TransitionResult:
    def mutate(production, context):
        production.cancel_reason = reason

    return await run_transition(
        db, PRODUCTION, production_id, "cancel", actor,
        context={"reason": reason}, mutate=mutate,
        description=f"取消生产：{reason}", metadata={"reason": reason},
    )


async def update_progress(
    db: AsyncSession,
    production_id: int,
    actor: Actor,
    items: List[Dict[str, Any]],
    progress: Optional[int] = None,
):
    """
    更新生产明细数量和整体进度

    items: [{"item_id", "produced_quantity", "qualified_quantity"}]
    未指定 progress 时按已生产数量 / 订购数量自动计算。
    """

    def mutate(production, context):
        by_id = {item.id: item for item in production.items}
        for payload in items:
            item = by_id.get(payload.get("item_id"))
            if item is None:
                raise InvalidQuantity(f"生产明细不存在: {payload.get('item_id')}", {"item_id": payload.get("item_id")})
            produced = payload.get("produced_quantity", item.produced_quantity)
            qualified = payload.get("qualified_quantity", item.qualified_quantity)
            if produced < 0 or produced > item.ordered_quantity:
                raise InvalidQuantity(
                    f"已生产数量 {produced} 超出范围 0~{item.ordered_quantity}", {"item_id": item.id}
                )
            if qualified < 0 or qualified > produced:
                raise InvalidQuantity(f"合格数量 {qualified} 不能超过已生产数量 {produced}", {"item_id": item.id})
            item.produced_quantity = produced
            item.qualified_quantity = qualified

        if progress is not None:
            if not 0 <= progress <= 100:
                raise InvalidQuantity(f"进度必须在0~100之间: {progress}", {"progress": progress})
            production.progress = progress
        else:
            ordered = sum(i.ordered_quantity for i in production.items)
            produced_total = sum(i.produced_quantity for i in production.items)
            production.progress = int(produced_total * 100 / ordered) if ordered else 0
        return {"progress": production.progress}

    return await run_operation(
        db, PRODUCTION, production_id, "update_progress", actor,
        label="更新生产进度",
        roles=WORKSHOP,
        allowed_statuses=PROGRESS_STAGES,
        mutate=mutate,
    )


async def update_material_readiness(
    db: AsyncSession,
    production_id: int,
    actor: Actor,
    readiness: MaterialReadiness,
    notes: Optional[str] = None,
):
    readiness = MaterialReadiness(readiness)

    def mutate(production, context):
        previous = production.material_readiness_status
        production.material_readiness_status = readiness.value
        return {"from": previous, "to": readiness.value, "notes": notes}

    return await run_operation(
        db, PRODUCTION, production_id, "update_material_readiness", actor,
        label=f"齐套状态：{readiness.value}",
        roles=PLANNING,
        allowed_statuses=OPEN_STAGES,
        mutate=mutate,
    )


async def delete_production_order(db: AsyncSession, production_id: int, actor: Actor) -> None:
    ensure_role(actor, (), "删除生产订单")
    async with write_scope(db, (PRODUCTION, production_id)):
        production = await load_production_order(db, production_id, for_update=True)
        if production.status not in [s.value for s in DELETABLE]:
            raise IllegalTransition(PRODUCTION.value, production.status, "delete")
        production_no = production.production_no
        await db.delete(production)
    logger.info(f"🗑️ 删除生产单 {production_no} by {actor.name}")


async def mark_overdue(db: AsyncSession, now: Optional[datetime] = None) -> List[str]:
    """将超过计划完成日期仍未完工的生产单标记为延期（系统身份）"""
    now = now or datetime.utcnow()
    result = await db.execute(
        select(ProductionOrder.id, ProductionOrder.production_no, ProductionOrder.planned_end)
        .where(ProductionOrder.status.in_([s.value for s in OVERDUE_STAGES]))
        .where(ProductionOrder.planned_end < now)
    )
    delayed = []
    for production_id, production_no, planned_end in result.all():
        reason = f"超过计划完成日期 {planned_end:%Y-%m-%d}"
        try:
            await delay(db, production_id, SYSTEM_ACTOR, reason, authorize=False)
        except WorkflowError as e:
            # 巡检期间状态已被人工推进，跳过
            logger.warning(f"逾期标记跳过 {production_no}: [{e.code}] {e.message}")
            continue
        delayed.append(production_no)
    if delayed:
        logger.info(f"⏰ 逾期巡检：{len(delayed)} 个生产单标记为延期")
    return delayed


async def list_production_orders(
    db: AsyncSession,
    *,
    status: Optional[str] = None,
    sales_order_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 20,
):
    query = select(ProductionOrder)
    if status:
        query = query.where(ProductionOrder.status == status)
    if sales_order_id:
        query = query.where(ProductionOrder.sales_order_id == sales_order_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(query.order_by(ProductionOrder.created_at.desc()).offset(skip).limit(limit))
    return {"data": result.scalars().all(), "total": total, "skip": skip, "limit": limit}
