"""生产订单API"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.deps import get_actor, get_db
from salesflow.schemas.common import AssigneeInput, HistoryEntryResponse, NotesInput, ReasonInput
from salesflow.schemas.production_order import (
    MaterialReadinessInput, ProductionOrderCreate, ProductionOrderListResponse, ProductionOrderResponse,
    ProductionOrderTransitionResponse, ProgressInput, RescheduleInput, ScheduleInput,
)
from salesflow.services import production_orders
from salesflow.services.loaders import load_production_order
from salesflow.workflow.actor import Actor
from salesflow.workflow.graphs import PRODUCTION_GRAPH

from .common import transition_payload

router = APIRouter()


@router.get("/", response_model=ProductionOrderListResponse)
async def list_production_orders(
    *,
    db: AsyncSession = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    sales_order_id: Optional[int] = Query(None)) -> Any:
    """获取生产单列表"""
    return await production_orders.list_production_orders(
        db, status=status, sales_order_id=sales_order_id, skip=skip, limit=limit
    )


@router.post("/", response_model=ProductionOrderTransitionResponse)
async def create_production_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_in: ProductionOrderCreate) -> Any:
    """由合同订单下达生产（同步订单为生产中）"""
    data = production_in.model_dump()
    sales_order_id = data.pop("sales_order_id")
    result = await production_orders.create_production_order(db, sales_order_id, actor, **data)
    return transition_payload(result)


@router.get("/{production_id}", response_model=ProductionOrderResponse)
async def get_production_order(
    *,
    db: AsyncSession = Depends(get_db),
    production_id: int) -> Any:
    return await load_production_order(db, production_id)


@router.get("/{production_id}/history", response_model=List[HistoryEntryResponse])
async def get_production_history(
    *,
    db: AsyncSession = Depends(get_db),
    production_id: int) -> Any:
    production = await load_production_order(db, production_id)
    return production.history


@router.get("/{production_id}/transitions", response_model=List[str])
async def get_available_transitions(
    *,
    db: AsyncSession = Depends(get_db),
    production_id: int) -> Any:
    production = await load_production_order(db, production_id)
    return PRODUCTION_GRAPH.available(production.status)


@router.post("/{production_id}/schedule", response_model=ProductionOrderTransitionResponse)
async def schedule(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int,
    body: Optional[ScheduleInput] = None) -> Any:
    data = body.model_dump() if body else {}
    return transition_payload(await production_orders.schedule(db, production_id, actor, **data))


@router.post("/{production_id}/assign-inspector", response_model=ProductionOrderResponse)
async def assign_inspector(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int,
    body: AssigneeInput) -> Any:
    """指派质检员"""
    return await production_orders.assign_inspector(db, production_id, actor, body.user_id)


@router.post("/{production_id}/start", response_model=ProductionOrderTransitionResponse)
async def start(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int) -> Any:
    return transition_payload(await production_orders.start(db, production_id, actor))


@router.post("/{production_id}/submit-for-qc", response_model=ProductionOrderTransitionResponse)
async def submit_for_qc(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int) -> Any:
    return transition_payload(await production_orders.submit_for_qc(db, production_id, actor))


@router.post("/{production_id}/pass-qc", response_model=ProductionOrderTransitionResponse)
async def pass_qc(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int,
    body: Optional[NotesInput] = None) -> Any:
    """质检通过（同步订单为质检通过）"""
    notes = body.notes if body else None
    return transition_payload(await production_orders.pass_qc(db, production_id, actor, notes))


@router.post("/{production_id}/fail-qc", response_model=ProductionOrderTransitionResponse)
async def fail_qc(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int,
    body: ReasonInput) -> Any:
    return transition_payload(await production_orders.fail_qc(db, production_id, actor, body.reason))


@router.post("/{production_id}/mark-ready-to-ship", response_model=ProductionOrderTransitionResponse)
async def mark_ready_to_ship(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int) -> Any:
    """通常由订单同步，管理员可手工补录"""
    return transition_payload(await production_orders.mark_ready_to_ship(db, production_id, actor))


@router.post("/{production_id}/ship", response_model=ProductionOrderTransitionResponse)
async def ship(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int) -> Any:
    return transition_payload(await production_orders.ship(db, production_id, actor))


@router.post("/{production_id}/complete", response_model=ProductionOrderTransitionResponse)
async def complete(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int) -> Any:
    return transition_payload(await production_orders.complete(db, production_id, actor))


@router.post("/{production_id}/delay", response_model=ProductionOrderTransitionResponse)
async def delay(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int,
    body: ReasonInput) -> Any:
    return transition_payload(await production_orders.delay(db, production_id, actor, body.reason))


@router.post("/{production_id}/pause", response_model=ProductionOrderTransitionResponse)
async def pause(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int,
    body: ReasonInput) -> Any:
    return transition_payload(await production_orders.pause(db, production_id, actor, body.reason))


@router.post("/{production_id}/resume", response_model=ProductionOrderTransitionResponse)
async def resume(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int) -> Any:
    return transition_payload(await production_orders.resume(db, production_id, actor))


@router.post("/{production_id}/reschedule", response_model=ProductionOrderTransitionResponse)
async def reschedule(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int,
    body: Optional[RescheduleInput] = None) -> Any:
    data = body.model_dump() if body else {}
    return transition_payload(await production_orders.reschedule(db, production_id, actor, **data))


@router.post("/{production_id}/cancel", response_model=ProductionOrderTransitionResponse)
async def cancel(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int,
    body: ReasonInput) -> Any:
    return transition_payload(await production_orders.cancel(db, production_id, actor, body.reason))


@router.post("/{production_id}/progress", response_model=ProductionOrderResponse)
async def update_progress(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int,
    body: ProgressInput) -> Any:
    """更新生产进度"""
    items = [item.model_dump(exclude_none=True) for item in body.items]
    return await production_orders.update_progress(db, production_id, actor, items, body.progress)


@router.post("/{production_id}/material-readiness", response_model=ProductionOrderResponse)
async def update_material_readiness(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int,
    body: MaterialReadinessInput) -> Any:
    return await production_orders.update_material_readiness(
        db, production_id, actor, body.readiness, body.notes
    )


@router.delete("/{production_id}")
async def delete_production_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    production_id: int) -> Any:
    await production_orders.delete_production_order(db, production_id, actor)
    return {"message": "删除成功"}
