"""生产订单 Schema"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from salesflow.schemas.common import HistoryEntryResponse, PropagationResponse
from salesflow.workflow.enums import MaterialReadiness


class ProductionOrderCreate(BaseModel):
    """由合同订单下达生产"""
    sales_order_id: int
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    priority: str = "Normal"
    notes: Optional[str] = None


class ScheduleInput(BaseModel):
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    supervisor_id: Optional[int] = None


class RescheduleInput(BaseModel):
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None


class ProgressItemInput(BaseModel):
    item_id: int
    produced_quantity: Optional[int] = None
    qualified_quantity: Optional[int] = None


class ProgressInput(BaseModel):
    items: List[ProgressItemInput] = []
    progress: Optional[int] = None


class MaterialReadinessInput(BaseModel):
    readiness: MaterialReadiness
    notes: Optional[str] = None


class ProductionItemResponse(BaseModel):
    id: int
    sales_order_line_id: Optional[int] = None
    item_code: Optional[str] = None
    description: Optional[str] = None
    ordered_quantity: int
    produced_quantity: int
    qualified_quantity: int

    class Config:
        from_attributes = True


class ProductionOrderResponse(BaseModel):
    """生产单响应"""
    id: int
    production_no: str
    sales_order_id: int
    order_snapshot: Optional[Dict[str, Any]] = None
    status: str
    status_display: str
    priority: Optional[str] = None
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    progress: int = Field(ge=0, le=100)
    material_readiness_status: Optional[str] = None
    supervisor_id: Optional[int] = None
    inspector_id: Optional[int] = None
    delay_reason: Optional[str] = None
    pause_reason: Optional[str] = None
    cancel_reason: Optional[str] = None
    qc_notes: Optional[str] = None
    notes: Optional[str] = None
    created_by: int
    created_at: Optional[datetime] = None
    items: List[ProductionItemResponse] = []
    history: List[HistoryEntryResponse] = []

    class Config:
        from_attributes = True


class ProductionOrderSummary(BaseModel):
    id: int
    production_no: str
    sales_order_id: int
    order_snapshot: Optional[Dict[str, Any]] = None
    status: str
    priority: Optional[str] = None
    planned_end: Optional[datetime] = None
    progress: int

    class Config:
        from_attributes = True


class ProductionOrderListResponse(BaseModel):
    data: List[ProductionOrderSummary]
    total: int
    skip: int
    limit: int


class ProductionOrderTransitionResponse(BaseModel):
    data: ProductionOrderResponse
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    propagation: List[PropagationResponse] = []
    fully_applied: bool = True
