"""售后工单API"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.deps import get_actor, get_db
from salesflow.schemas.common import AssignInput, HistoryEntryResponse, NotesInput, ReasonInput
from salesflow.schemas.service_ticket import (
    CloseInput, CustomerReplyInput, ReopenInput, ReportInput, SolutionInput,
    TicketCreate, TicketListResponse, TicketResponse, TicketTransitionResponse,
)
from salesflow.services import tickets
from salesflow.services.loaders import load_ticket
from salesflow.workflow.actor import Actor
from salesflow.workflow.graphs import TICKET_GRAPH

from .common import transition_payload

router = APIRouter()


@router.get("/", response_model=TicketListResponse)
async def list_tickets(
    *,
    db: AsyncSession = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    assigned_to_id: Optional[int] = Query(None),
    keyword: Optional[str] = Query(None)) -> Any:
    """获取工单列表"""
    return await tickets.list_tickets(
        db, status=status, assigned_to_id=assigned_to_id, keyword=keyword, skip=skip, limit=limit
    )


@router.post("/", response_model=TicketResponse)
async def create_ticket(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_in: TicketCreate) -> Any:
    return await tickets.create_ticket(db, actor, **ticket_in.model_dump())


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    *,
    db: AsyncSession = Depends(get_db),
    ticket_id: int) -> Any:
    return await load_ticket(db, ticket_id)


@router.get("/{ticket_id}/history", response_model=List[HistoryEntryResponse])
async def get_ticket_history(
    *,
    db: AsyncSession = Depends(get_db),
    ticket_id: int,
    visibility: Optional[str] = Query(None, description="按可见范围过滤，如 外部")) -> Any:
    """工单历史；对客户展示时只取 外部/全部 可见的记录"""
    ticket = await load_ticket(db, ticket_id)
    if visibility:
        return [h for h in ticket.history if h.visibility in (visibility, "全部")]
    return ticket.history


@router.get("/{ticket_id}/transitions", response_model=List[str])
async def get_available_transitions(
    *,
    db: AsyncSession = Depends(get_db),
    ticket_id: int) -> Any:
    ticket = await load_ticket(db, ticket_id)
    return TICKET_GRAPH.available(ticket.status)


@router.post("/{ticket_id}/assign", response_model=TicketResponse)
async def assign_engineer(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int,
    body: AssignInput) -> Any:
    """指派技术工程师"""
    return await tickets.assign_engineer(db, ticket_id, actor, body.engineer_id)


@router.post("/{ticket_id}/accept", response_model=TicketTransitionResponse)
async def accept_ticket(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int) -> Any:
    return transition_payload(await tickets.accept_ticket(db, ticket_id, actor))


@router.post("/{ticket_id}/submit-solution", response_model=TicketTransitionResponse)
async def submit_solution(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int,
    body: SolutionInput) -> Any:
    return transition_payload(await tickets.submit_solution(db, ticket_id, actor, body.solution))


@router.post("/{ticket_id}/approve-solution", response_model=TicketTransitionResponse)
async def approve_solution(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int,
    body: Optional[NotesInput] = None) -> Any:
    notes = body.notes if body else None
    return transition_payload(await tickets.approve_solution(db, ticket_id, actor, notes))


@router.post("/{ticket_id}/request-customer-feedback", response_model=TicketTransitionResponse)
async def request_customer_feedback(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int,
    body: Optional[NotesInput] = None) -> Any:
    notes = body.notes if body else None
    return transition_payload(await tickets.request_customer_feedback(db, ticket_id, actor, notes))


@router.post("/{ticket_id}/record-customer-reply", response_model=TicketTransitionResponse)
async def record_customer_reply(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int,
    body: Optional[CustomerReplyInput] = None) -> Any:
    comments = body.comments if body else None
    return transition_payload(await tickets.record_customer_reply(db, ticket_id, actor, comments))


@router.post("/{ticket_id}/report", response_model=TicketResponse)
async def save_report(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int,
    body: ReportInput) -> Any:
    """保存最终报告"""
    return await tickets.save_report(db, ticket_id, actor, body.content, body.root_cause, body.actions_taken)


@router.post("/{ticket_id}/mark-as-resolved", response_model=TicketTransitionResponse)
async def mark_as_resolved(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int) -> Any:
    return transition_payload(await tickets.mark_as_resolved(db, ticket_id, actor))


@router.post("/{ticket_id}/close", response_model=TicketTransitionResponse)
async def close_ticket(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int,
    body: CloseInput) -> Any:
    return transition_payload(await tickets.close_ticket(db, ticket_id, actor, body.close_reason, body.feedback))


@router.post("/{ticket_id}/reopen", response_model=TicketTransitionResponse)
async def reopen_ticket(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int,
    body: ReopenInput) -> Any:
    return transition_payload(await tickets.reopen_ticket(db, ticket_id, actor, body.reason, body.comments))


@router.post("/{ticket_id}/cancel", response_model=TicketTransitionResponse)
async def cancel_ticket(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int,
    body: ReasonInput) -> Any:
    return transition_payload(await tickets.cancel_ticket(db, ticket_id, actor, body.reason))


@router.delete("/{ticket_id}")
async def delete_ticket(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ticket_id: int) -> Any:
    await tickets.delete_ticket(db, ticket_id, actor)
    return {"message": "删除成功"}
