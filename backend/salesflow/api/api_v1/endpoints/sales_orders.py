"""合同订单API"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.deps import get_actor, get_db
from salesflow.schemas.common import AssigneeInput, HistoryEntryResponse, ReasonInput
from salesflow.schemas.sales_order import (
    ApprovalInput, FinancialsUpdate, PaymentInput, SalesOrderCreate, SalesOrderListResponse,
    SalesOrderResponse, SalesOrderTransitionResponse, ShipmentInput,
)
from salesflow.services import sales_orders
from salesflow.services.loaders import load_sales_order
from salesflow.workflow.actor import Actor
from salesflow.workflow.graphs import SALES_ORDER_GRAPH

from .common import transition_payload

router = APIRouter()


@router.get("/", response_model=SalesOrderListResponse)
async def list_orders(
    *,
    db: AsyncSession = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    payment_status: Optional[str] = Query(None),
    keyword: Optional[str] = Query(None)) -> Any:
    """获取订单列表"""
    return await sales_orders.list_orders(
        db, status=status, payment_status=payment_status, keyword=keyword, skip=skip, limit=limit
    )


@router.post("/", response_model=SalesOrderResponse)
async def create_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_in: SalesOrderCreate) -> Any:
    """已赢单项目转化为合同订单"""
    data = order_in.model_dump()
    project_id = data.pop("project_id")
    return await sales_orders.create_order_from_project(db, project_id, actor, **data)


@router.get("/{order_id}", response_model=SalesOrderResponse)
async def get_order(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int) -> Any:
    return await load_sales_order(db, order_id)


@router.get("/{order_id}/history", response_model=List[HistoryEntryResponse])
async def get_order_history(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int) -> Any:
    order = await load_sales_order(db, order_id)
    return order.history


@router.get("/{order_id}/transitions", response_model=List[str])
async def get_available_transitions(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int) -> Any:
    order = await load_sales_order(db, order_id)
    return SALES_ORDER_GRAPH.available(order.status)


@router.post("/{order_id}/approve", response_model=SalesOrderTransitionResponse)
async def approve_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int,
    body: ApprovalInput) -> Any:
    """审批订单（通过即确认）"""
    return transition_payload(await sales_orders.approve(db, order_id, actor, body.decision, body.notes))


@router.post("/{order_id}/assign-logistics", response_model=SalesOrderResponse)
async def assign_logistics(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int,
    body: AssigneeInput) -> Any:
    """指派物流专员"""
    return await sales_orders.assign_logistics(db, order_id, actor, body.user_id)


@router.post("/{order_id}/assign-planner", response_model=SalesOrderResponse)
async def assign_planner(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int,
    body: AssigneeInput) -> Any:
    """指派生产计划员"""
    return await sales_orders.assign_planner(db, order_id, actor, body.user_id)


@router.post("/{order_id}/confirm", response_model=SalesOrderTransitionResponse)
async def confirm_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int) -> Any:
    return transition_payload(await sales_orders.confirm(db, order_id, actor))


@router.post("/{order_id}/financials", response_model=SalesOrderResponse)
async def update_financials(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int,
    body: FinancialsUpdate) -> Any:
    return await sales_orders.update_financials(db, order_id, actor, **body.model_dump())


@router.post("/{order_id}/payments", response_model=SalesOrderResponse)
async def record_payment(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int,
    payment_in: PaymentInput) -> Any:
    """登记收款"""
    data = payment_in.model_dump()
    amount = data.pop("amount")
    return await sales_orders.record_payment(db, order_id, actor, amount, **data)


@router.post("/{order_id}/confirm-final-payment", response_model=SalesOrderResponse)
async def confirm_final_payment(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int) -> Any:
    return await sales_orders.confirm_final_payment(db, order_id, actor)


@router.post("/{order_id}/mark-ready-to-ship", response_model=SalesOrderTransitionResponse)
async def mark_ready_to_ship(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int) -> Any:
    return transition_payload(await sales_orders.mark_ready_to_ship(db, order_id, actor))


@router.post("/{order_id}/ship", response_model=SalesOrderTransitionResponse)
async def ship_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int,
    body: ShipmentInput) -> Any:
    """发货（同步生产单为已发货）"""
    return transition_payload(await sales_orders.ship(db, order_id, actor, **body.model_dump()))


@router.post("/{order_id}/shipments", response_model=SalesOrderResponse)
async def add_shipment(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int,
    body: ShipmentInput) -> Any:
    """追加发货批次"""
    return await sales_orders.add_shipment(db, order_id, actor, **body.model_dump())


@router.post("/{order_id}/mark-delivered", response_model=SalesOrderTransitionResponse)
async def mark_delivered(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int) -> Any:
    return transition_payload(await sales_orders.mark_delivered(db, order_id, actor))


@router.post("/{order_id}/complete", response_model=SalesOrderTransitionResponse)
async def complete_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int) -> Any:
    return transition_payload(await sales_orders.complete(db, order_id, actor))


@router.post("/{order_id}/cancel", response_model=SalesOrderTransitionResponse)
async def cancel_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int,
    body: ReasonInput) -> Any:
    return transition_payload(await sales_orders.cancel(db, order_id, actor, body.reason))


@router.delete("/{order_id}")
async def delete_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    order_id: int) -> Any:
    """删除订单（管理员，来源项目保持锁定）"""
    await sales_orders.delete_order(db, order_id, actor)
    return {"message": "删除成功"}
