"""
售后工单流程

待技术受理 → 技术处理中 ⇄ 方案待审批 / 等待客户反馈 → 问题已解决-待确认 → 已关闭
问题已解决-待确认 可被重新打开回到技术处理中；待受理/处理中可取消。
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.errors import IllegalTransition
from salesflow.core.logging_config import get_logger
from salesflow.models import ServiceTicket
from salesflow.services.loaders import load_sales_order, load_ticket, load_user
from salesflow.services.propagation import TransitionResult
from salesflow.services.sequencing import PREFIXES, next_number, sequence_key
from salesflow.services.transitions import run_operation, run_transition
from salesflow.services.unit_of_work import write_scope
from salesflow.workflow.actor import Actor
from salesflow.workflow.audit import append_history
from salesflow.workflow.enums import CloseReason, EntityType, Role, TicketStatus, Visibility
from salesflow.workflow.graphs import AFTER_SALES, TECHNICAL, technical_engineer
from salesflow.workflow.guard import required_input
from salesflow.workflow.ownership import ensure_role

logger = get_logger(__name__)

TICKET = EntityType.SERVICE_TICKET

TICKET_CREATORS = frozenset({
    Role.AFTER_SALES, Role.SALES_ENGINEER, Role.SALES_MANAGER, Role.TECHNICAL_ENGINEER,
})
DELETABLE = (TicketStatus.PENDING_ACCEPTANCE, TicketStatus.CANCELLED)


async def create_ticket(
    db: AsyncSession,
    actor: Actor,
    *,
    title: str,
    description: Optional[str] = None,
    client_name: Optional[str] = None,
    sales_order_id: Optional[int] = None,
    ticket_type: str = "维修",
    priority: str = "Normal",
) -> ServiceTicket:
    ensure_role(actor, TICKET_CREATORS, "创建售后工单")
    if sales_order_id is not None:
        order = await load_sales_order(db, sales_order_id)
        client_name = client_name or order.project_snapshot.get("client_name")

    prefix = PREFIXES["service_ticket"]
    async with write_scope(db, sequence_key(prefix)):
        ticket = ServiceTicket(
            ticket_no=await next_number(db, ServiceTicket.ticket_no, prefix),
            sales_order_id=sales_order_id,
            ticket_type=ticket_type,
            priority=priority,
            title=title,
            description=description,
            client_name=client_name,
            status=TicketStatus.PENDING_ACCEPTANCE.value,
            created_by_id=actor.id,
            created_by_name=actor.name,
            created_by_role=actor.role.value,
            history=[],
        )
        append_history(
            ticket, "create", actor, f"创建工单：{title}",
            to_status=TicketStatus.PENDING_ACCEPTANCE, visibility=Visibility.ALL,
        )
        db.add(ticket)
    logger.info(f"🎫 新建工单 {ticket.ticket_no} by {actor.name}")
    return await load_ticket(db, ticket.id)


async def assign_engineer(db: AsyncSession, ticket_id: int, actor: Actor, engineer_id: int):
    engineer = await load_user(db, engineer_id)

    def mutate(ticket, context):
        previous = ticket.assigned_to_name
        ticket.assigned_to_id = engineer.id
        ticket.assigned_to_name = engineer.display_name
        ticket.assigned_to_role = engineer.role
        return {"engineer_id": engineer.id, "engineer_name": engineer.display_name, "previous": previous}

    return await run_operation(
        db, TICKET, ticket_id, "assign_engineer", actor,
        label="指派技术工程师",
        roles=AFTER_SALES,
        allowed_statuses=(TicketStatus.PENDING_ACCEPTANCE,),
        context={"engineer": engineer, "description": f"指派技术工程师：{engineer.display_name}"},
        preconditions=(technical_engineer,),
        mutate=mutate,
    )


async def accept_ticket(db: AsyncSession, ticket_id: int, actor: Actor) -> TransitionResult:
    """受理：指派的工程师本人，或未指派时由技术工程师认领"""

    def mutate(ticket, context):
        if ticket.assigned_to_id == actor.id and not ticket.assigned_to_name:
            ticket.assigned_to_name = actor.name
            ticket.assigned_to_role = actor.role.value
        ticket.accepted_at = datetime.utcnow()

    return await run_transition(db, TICKET, ticket_id, "accept_ticket", actor, mutate=mutate)


async def submit_solution(db: AsyncSession, ticket_id: int, actor: Actor, solution: str) -> TransitionResult:
    def mutate(ticket, context):
        ticket.solution = solution

    return await run_transition(
        db, TICKET, ticket_id, "submit_solution", actor,
        context={"solution": solution}, mutate=mutate,
    )


async def approve_solution(db: AsyncSession, ticket_id: int, actor: Actor, notes: Optional[str] = None) -> TransitionResult:
    return await run_transition(
        db, TICKET, ticket_id, "approve_solution", actor, metadata={"notes": notes} if notes else None
    )


async def request_customer_feedback(db: AsyncSession, ticket_id: int, actor: Actor, notes: Optional[str] = None) -> TransitionResult:
    return await run_transition(
        db, TICKET, ticket_id, "request_customer_feedback", actor, metadata={"notes": notes} if notes else None
    )


async def record_customer_reply(db: AsyncSession, ticket_id: int, actor: Actor, comments: Optional[str] = None) -> TransitionResult:
    return await run_transition(
        db, TICKET, ticket_id, "record_customer_reply", actor, metadata={"comments": comments} if comments else None
    )


async def save_report(
    db: AsyncSession,
    ticket_id: int,
    actor: Actor,
    content: str,
    root_cause: Optional[str] = None,
    actions_taken: Optional[str] = None,
):
    """保存最终报告（处理中才可保存，可多次覆盖）"""

    def mutate(ticket, context):
        ticket.final_report = {
            "content": content,
            "root_cause": root_cause,
            "actions_taken": actions_taken,
            "generated_by": actor.snapshot(),
            "generated_at": datetime.utcnow().isoformat(),
        }
        return {"length": len(content)}

    return await run_operation(
        db, TICKET, ticket_id, "save_report", actor,
        label="保存最终报告",
        roles=TECHNICAL,
        allowed_statuses=(TicketStatus.IN_PROGRESS,),
        context={"content": content},
        preconditions=(required_input("content", "report_content_required"),),
        mutate=mutate,
    )


async def mark_as_resolved(db: AsyncSession, ticket_id: int, actor: Actor) -> TransitionResult:
    def mutate(ticket, context):
        ticket.resolved_at = datetime.utcnow()

    return await run_transition(db, TICKET, ticket_id, "mark_as_resolved", actor, mutate=mutate)


async def close_ticket(
    db: AsyncSession,
    ticket_id: int,
    actor: Actor,
    close_reason: CloseReason,
    feedback: Optional[Dict[str, Any]] = None,
) -> TransitionResult:
    reason = getattr(close_reason, "value", close_reason)

    def mutate(ticket, context):
        ticket.closed_by_id = actor.id
        ticket.closed_by_name = actor.name
        ticket.closed_by_role = actor.role.value
        ticket.closed_at = datetime.utcnow()
        ticket.close_reason = reason
        if feedback:
            ticket.customer_feedback = dict(feedback)

    return await run_transition(
        db, TICKET, ticket_id, "close_ticket", actor,
        context={"close_reason": reason}, mutate=mutate,
        description=f"关闭工单：{reason}",
        metadata={"close_reason": reason, "feedback": feedback},
    )


async def reopen_ticket(db: AsyncSession, ticket_id: int, actor: Actor, reason: str, comments: str) -> TransitionResult:
    """重新打开：原因和说明都必须填写，两者写入历史 metadata"""

    def mutate(ticket, context):
        ticket.resolved_at = None

    return await run_transition(
        db, TICKET, ticket_id, "reopen_ticket", actor,
        context={"reason": reason, "comments": comments}, mutate=mutate,
        description=f"重新打开：{reason}",
        metadata={"reason": reason, "comments": comments},
    )


async def cancel_ticket(db: AsyncSession, ticket_id: int, actor: Actor, reason: str) -> TransitionResult:
    return await run_transition(
        db, TICKET, ticket_id, "cancel_ticket", actor,
        context={"reason": reason},
        description=f"取消工单：{reason}", metadata={"reason": reason},
    )


async def delete_ticket(db: AsyncSession, ticket_id: int, actor: Actor) -> None:
    ensure_role(actor, (), "删除售后工单")
    async with write_scope(db, (TICKET, ticket_id)):
        ticket = await load_ticket(db, ticket_id, for_update=True)
        if ticket.status not in [s.value for s in DELETABLE]:
            raise IllegalTransition(TICKET.value, ticket.status, "delete")
        ticket_no = ticket.ticket_no
        await db.delete(ticket)
    logger.info(f"🗑️ 删除工单 {ticket_no} by {actor.name}")


async def list_tickets(
    db: AsyncSession,
    *,
    status: Optional[str] = None,
    assigned_to_id: Optional[int] = None,
    keyword: Optional[str] = None,
    skip: int = 0,
    limit: int = 20,
):
    query = select(ServiceTicket)
    if status:
        query = query.where(ServiceTicket.status == status)
    if assigned_to_id:
        query = query.where(ServiceTicket.assigned_to_id == assigned_to_id)
    if keyword:
        like = f"%{keyword}%"
        query = query.where(or_(
            ServiceTicket.ticket_no.like(like),
            ServiceTicket.title.like(like),
            ServiceTicket.client_name.like(like),
        ))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(query.order_by(ServiceTicket.created_at.desc()).offset(skip).limit(limit))
    return {"data": result.scalars().all(), "total": total, "skip": skip, "limit": limit}
