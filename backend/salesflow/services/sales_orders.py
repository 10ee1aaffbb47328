"""
合同订单流程

核心逻辑：
- 从已赢单项目转化：同一事务内创建订单并锁定项目，两边都写历史
- 审批通过即确认订单；生产单下达后进入生产中（由生产侧传播）
- 尾款确认 → 可发货 → 发货（同步生产单）→ 签收 → 完成
- 收款只能经账务规则追加，付款状态随之推导
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.config import settings
from salesflow.core.errors import DuplicateLink, IllegalTransition, PreconditionFailed
from salesflow.core.logging_config import get_logger
from salesflow.models import SalesOrder, SalesOrderLine, Shipment
from salesflow.services.effects import set_line_status
from salesflow.services.loaders import load_project, load_sales_order, load_user
from salesflow.services.propagation import TransitionResult
from salesflow.services.sequencing import PREFIXES, next_number, sequence_key, shipment_number
from salesflow.services.transitions import log_transition, run_operation, run_transition
from salesflow.services.unit_of_work import write_scope
from salesflow.workflow import ledger
from salesflow.workflow.actor import Actor
from salesflow.workflow.audit import append_history
from salesflow.workflow.enums import (
    ApprovalStatus, EntityType, LineStatus, SalesOrderStatus, Visibility,
)
from salesflow.workflow.graphs import (
    CONFIRMERS, LOGISTICS, ORDER_DESK, SALES_ORDER_GRAPH, fully_paid, logistics_specialist, production_planner,
)
from salesflow.workflow.guard import fire, required_input
from salesflow.workflow.ownership import ensure_authorized, ensure_role
from salesflow.workflow.pricing import to_decimal

logger = get_logger(__name__)

SALES_ORDER = EntityType.SALES_ORDER

DELETABLE = (SalesOrderStatus.PENDING, SalesOrderStatus.CANCELLED)
PAYABLE = tuple(s for s in SalesOrderStatus if s != SalesOrderStatus.CANCELLED)
FINAL_PAYMENT_STAGES = (SalesOrderStatus.CONFIRMED, SalesOrderStatus.IN_PRODUCTION, SalesOrderStatus.QC_PASSED)
OPEN_STAGES = tuple(s for s in SalesOrderStatus if s not in (SalesOrderStatus.CANCELLED, SalesOrderStatus.COMPLETED))
PRE_PRODUCTION = (SalesOrderStatus.PENDING, SalesOrderStatus.CONFIRMED)


async def create_order_from_project(
    db: AsyncSession,
    project_id: int,
    actor: Actor,
    *,
    tax_rate=0,
    shipping_cost=0,
    discount=0,
    payment_terms: Optional[str] = None,
    delivery_address: Optional[str] = None,
    notes: Optional[str] = None,
) -> SalesOrder:
    """
    项目转合同订单

    前置条件：项目已赢单、未转化过、BOM 非空。
    订单明细按 BOM 数量重新解析单价；项目随之锁定，锁定不可自动解除。
    """
    prefix = PREFIXES["sales_order"]
    async with write_scope(db, (EntityType.PROJECT, project_id), sequence_key(prefix)):
        project = await load_project(db, project_id, for_update=True)
        ensure_authorized(actor, project, "转化合同订单", ORDER_DESK)

        if not project.is_won:
            raise PreconditionFailed("project_not_won", f"项目 {project.project_no} 尚未赢单")
        existing = await db.execute(select(SalesOrder.order_no).where(SalesOrder.project_id == project.id))
        existing_no = existing.scalar_one_or_none()
        if existing_no:
            raise DuplicateLink(
                f"项目 {project.project_no} 已转化为订单 {existing_no}",
                {"project_id": project.id, "order_no": existing_no},
            )
        if project.is_locked:
            raise PreconditionFailed("project_locked", f"项目 {project.project_no} 已锁定")
        if not project.bom_lines:
            raise PreconditionFailed("bom_empty", "报价BOM为空，无法转化订单")

        lines = []
        for bom_line in project.bom_lines:
            unit_price = ledger.line_unit_price(bom_line)
            lines.append(SalesOrderLine(
                line_no=bom_line.line_no,
                catalog_item_id=bom_line.catalog_item_id,
                item_code=bom_line.catalog_item.code if bom_line.catalog_item else None,
                description=bom_line.description,
                quantity=bom_line.quantity,
                unit_price=unit_price,
                total_price=unit_price * to_decimal(bom_line.quantity),
                production_status=LineStatus.PENDING.value,
            ))
        totals = ledger.compute_totals(lines, tax_rate, shipping_cost, discount)

        latest_version = (project.technical_versions or [{}])[-1].get("version")
        order = SalesOrder(
            order_no=await next_number(db, SalesOrder.order_no, prefix),
            project_id=project.id,
            project_snapshot={
                "project_no": project.project_no,
                "name": project.name,
                "client_name": project.client_name,
                "client_contact": project.client_contact,
                "quote_total": str(project.quote_total or 0),
                "technical_version": latest_version,
            },
            status=SalesOrderStatus.PENDING.value,
            tax_rate=to_decimal(tax_rate),
            shipping_cost=to_decimal(shipping_cost),
            discount=to_decimal(discount),
            payment_terms=payment_terms,
            approval_status=ApprovalStatus.PENDING.value,
            delivery_address=delivery_address,
            notes=notes,
            created_by=actor.id,
            assigned_to=project.owner_id,
            lines=lines,
            payment_records=[],
            shipments=[],
            history=[],
        )
        ledger.apply_totals(order, totals)
        ledger.refresh_payment_summary(order)

        project.is_locked = True
        project.locked_at = datetime.utcnow()
        project.locked_reason = settings.PROJECT_LOCK_REASON

        append_history(
            order, "create", actor, f"由项目 {project.project_no} 转化",
            to_status=SalesOrderStatus.PENDING,
            metadata={"project_id": project.id, "project_no": project.project_no, "total": str(totals.total)},
        )
        append_history(
            project, "lock", actor, f"{settings.PROJECT_LOCK_REASON}：{order.order_no}",
            metadata={"order_no": order.order_no, "locked_reason": settings.PROJECT_LOCK_REASON},
        )
        db.add(order)

    logger.info(f"📝 项目 {project.project_no} 转化为订单 {order.order_no}，总额 ¥{totals.total}，项目已锁定")
    return await load_sales_order(db, order.id)


async def approve(
    db: AsyncSession, order_id: int, actor: Actor, decision: ApprovalStatus, notes: Optional[str] = None
) -> TransitionResult:
    """审批订单；通过时同一事务内确认订单"""
    decision = ApprovalStatus(decision)
    if decision == ApprovalStatus.PENDING:
        raise PreconditionFailed("approval_decision_required", "审批结论只能是通过或驳回")

    async with write_scope(db, (SALES_ORDER, order_id)):
        order = await load_sales_order(db, order_id, for_update=True)
        from_status = order.status
        if order.status != SalesOrderStatus.PENDING.value:
            raise IllegalTransition(SALES_ORDER.value, order.status, "approve")
        ensure_authorized(actor, order, "审批订单", CONFIRMERS)

        order.approval_status = decision.value
        order.approved_by = actor.id
        order.approved_at = datetime.utcnow()
        order.approval_notes = notes
        append_history(
            order, "approve", actor,
            "审批通过" if decision == ApprovalStatus.APPROVED else f"审批驳回：{notes or ''}",
            metadata={"decision": decision.value, "notes": notes},
        )
        if decision == ApprovalStatus.APPROVED:
            fire(SALES_ORDER_GRAPH, order, "confirm", actor)
    log_transition(order, from_status, order.status, actor)
    return TransitionResult(order, from_status, order.status)


async def confirm(db: AsyncSession, order_id: int, actor: Actor) -> TransitionResult:
    return await run_transition(db, SALES_ORDER, order_id, "confirm", actor)


async def update_financials(
    db: AsyncSession,
    order_id: int,
    actor: Actor,
    *,
    tax_rate=None,
    shipping_cost=None,
    discount=None,
    payment_terms: Optional[str] = None,
):
    """调整税率/运费/折扣（仅待确认订单），重算总额与付款状态"""

    def mutate(order, context):
        if tax_rate is not None:
            order.tax_rate = to_decimal(tax_rate)
        if shipping_cost is not None:
            order.shipping_cost = to_decimal(shipping_cost)
        if discount is not None:
            order.discount = to_decimal(discount)
        if payment_terms is not None:
            order.payment_terms = payment_terms
        totals = ledger.compute_totals(order.lines, order.tax_rate, order.shipping_cost, order.discount)
        ledger.apply_totals(order, totals)
        ledger.refresh_payment_summary(order)
        return {"subtotal": str(totals.subtotal), "tax_amount": str(totals.tax_amount), "total": str(totals.total)}

    return await run_operation(
        db, SALES_ORDER, order_id, "update_financials", actor,
        label="调整订单财务信息",
        roles=ORDER_DESK,
        allowed_statuses=(SalesOrderStatus.PENDING,),
        mutate=mutate,
    )


async def record_payment(
    db: AsyncSession,
    order_id: int,
    actor: Actor,
    amount,
    *,
    method: Optional[str] = None,
    reference: Optional[str] = None,
    paid_at: Optional[datetime] = None,
    notes: Optional[str] = None,
):
    """登记收款（与状态转换同一把写锁，避免已付金额丢失更新）"""

    def mutate(order, context):
        record = ledger.record_payment(
            order, amount, method=method, reference=reference, paid_at=paid_at, notes=notes, recorded_by=actor.id
        )
        return {
            "amount": str(record.amount),
            "method": method,
            "reference": reference,
            "paid_amount": str(order.paid_amount),
            "payment_status": order.payment_status,
        }

    return await run_operation(
        db, SALES_ORDER, order_id, "record_payment", actor,
        label=f"登记收款 ¥{amount}",
        roles=ORDER_DESK,
        allowed_statuses=PAYABLE,
        mutate=mutate,
    )


def _not_yet_confirmed(order, context):
    return "final_payment_already_confirmed" if order.final_payment_confirmed else None


async def confirm_final_payment(db: AsyncSession, order_id: int, actor: Actor):
    """确认尾款：必须已全额到账，部分到账一律拒绝"""

    def mutate(order, context):
        order.final_payment_confirmed = True
        order.final_payment_confirmed_at = datetime.utcnow()
        order.final_payment_confirmed_by = actor.id
        return {"paid_amount": str(order.paid_amount), "total_amount": str(order.total_amount)}

    return await run_operation(
        db, SALES_ORDER, order_id, "confirm_final_payment", actor,
        label="确认尾款到账",
        roles=ORDER_DESK,
        allowed_statuses=FINAL_PAYMENT_STAGES,
        preconditions=(_not_yet_confirmed, fully_paid),
        mutate=mutate,
    )


async def mark_ready_to_ship(db: AsyncSession, order_id: int, actor: Actor) -> TransitionResult:
    return await run_transition(db, SALES_ORDER, order_id, "mark_ready_to_ship", actor)


def _append_shipment(order, actor: Actor, tracking_number, carrier, shipped_at, items, notes) -> Dict[str, Any]:
    seq = len(order.shipments) + 1
    shipment = Shipment(
        seq=seq,
        shipment_no=shipment_number(order.order_no, seq),
        tracking_number=tracking_number,
        carrier=carrier,
        shipped_at=shipped_at or datetime.utcnow(),
        items=items or [{"line_no": l.line_no, "item_code": l.item_code, "quantity": l.quantity} for l in order.lines],
        notes=notes,
        created_by=actor.id,
    )
    order.shipments.append(shipment)
    return {"shipment_no": shipment.shipment_no, "tracking_number": tracking_number, "carrier": carrier}


async def _assign(db, order_id, actor, user_id, operation, label, field, statuses, check):
    assignee = await load_user(db, user_id)

    def mutate(order, context):
        previous = getattr(order, field)
        setattr(order, field, assignee.id)
        return {"user_id": assignee.id, "user_name": assignee.display_name, "previous": previous}

    return await run_operation(
        db, SALES_ORDER, order_id, operation, actor,
        label=label,
        roles=ORDER_DESK,
        allowed_statuses=statuses,
        context={"engineer": assignee, "description": f"{label}：{assignee.display_name}"},
        preconditions=(check,),
        mutate=mutate,
    )


async def assign_logistics(db: AsyncSession, order_id: int, actor: Actor, user_id: int):
    """指派物流专员，发货和追加批次只能由其本人（或销售经理）操作"""
    return await _assign(
        db, order_id, actor, user_id, "assign_logistics", "指派物流专员", "logistics_id",
        OPEN_STAGES, logistics_specialist,
    )


async def assign_planner(db: AsyncSession, order_id: int, actor: Actor, user_id: int):
    """指派生产计划员，由其下达生产订单"""
    return await _assign(
        db, order_id, actor, user_id, "assign_planner", "指派生产计划员", "planner_id",
        PRE_PRODUCTION, production_planner,
    )


async def ship(
    db: AsyncSession,
    order_id: int,
    actor: Actor,
    *,
    tracking_number: str,
    carrier: str,
    shipped_at: Optional[datetime] = None,
    items: Optional[List[Dict[str, Any]]] = None,
    notes: Optional[str] = None,
) -> TransitionResult:
    """首批发货，同步生产单为已发货"""

    def mutate(order, context):
        set_line_status(order, LineStatus.SHIPPED)
        return _append_shipment(order, actor, tracking_number, carrier, shipped_at, items, notes)

    return await run_transition(
        db, SALES_ORDER, order_id, "ship", actor,
        context={"tracking_number": tracking_number, "carrier": carrier},
        mutate=mutate,
    )


async def add_shipment(
    db: AsyncSession,
    order_id: int,
    actor: Actor,
    *,
    tracking_number: str,
    carrier: str,
    shipped_at: Optional[datetime] = None,
    items: Optional[List[Dict[str, Any]]] = None,
    notes: Optional[str] = None,
):
    """追加发货批次（已发货订单的分批发货）"""

    def mutate(order, context):
        return _append_shipment(order, actor, tracking_number, carrier, shipped_at, items, notes)

    return await run_operation(
        db, SALES_ORDER, order_id, "add_shipment", actor,
        label="追加发货批次",
        roles=LOGISTICS,
        allowed_statuses=(SalesOrderStatus.SHIPPED,),
        context={"tracking_number": tracking_number, "carrier": carrier},
        preconditions=(
            required_input("tracking_number", "tracking_number_required"),
            required_input("carrier", "carrier_required"),
        ),
        mutate=mutate,
        visibility=Visibility.ALL,
    )


async def mark_delivered(db: AsyncSession, order_id: int, actor: Actor) -> TransitionResult:
    def mutate(order, context):
        order.delivered_at = datetime.utcnow()

    return await run_transition(db, SALES_ORDER, order_id, "mark_delivered", actor, mutate=mutate)


async def complete(db: AsyncSession, order_id: int, actor: Actor) -> TransitionResult:
    def mutate(order, context):
        order.completed_at = datetime.utcnow()

    return await run_transition(db, SALES_ORDER, order_id, "complete", actor, mutate=mutate)


async def cancel(db: AsyncSession, order_id: int, actor: Actor, reason: str) -> TransitionResult:
    def mutate(order, context):
        order.cancelled_at = datetime.utcnow()
        order.cancel_reason = reason

    return await run_transition(
        db, SALES_ORDER, order_id, "cancel", actor,
        context={"reason": reason}, mutate=mutate,
        description=f"取消订单：{reason}", metadata={"reason": reason},
    )


async def delete_order(db: AsyncSession, order_id: int, actor: Actor) -> None:
    """删除订单（仅管理员；待确认或已取消）。来源项目保持锁定。"""
    ensure_role(actor, (), "删除订单")
    async with write_scope(db, (SALES_ORDER, order_id)):
        order = await load_sales_order(db, order_id, for_update=True)
        if order.status not in [s.value for s in DELETABLE]:
            raise IllegalTransition(SALES_ORDER.value, order.status, "delete")
        order_no = order.order_no
        await db.delete(order)
    logger.info(f"🗑️ 删除订单 {order_no} by {actor.name}")


async def list_orders(
    db: AsyncSession,
    *,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    keyword: Optional[str] = None,
    skip: int = 0,
    limit: int = 20,
):
    query = select(SalesOrder)
    if status:
        query = query.where(SalesOrder.status == status)
    if payment_status:
        query = query.where(SalesOrder.payment_status == payment_status)
    if keyword:
        query = query.where(SalesOrder.order_no.like(f"%{keyword}%"))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(query.order_by(SalesOrder.created_at.desc()).offset(skip).limit(limit))
    return {"data": result.scalars().all(), "total": total, "skip": skip, "limit": limit}
