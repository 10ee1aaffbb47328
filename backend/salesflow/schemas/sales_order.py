"""合同订单 Schema"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from salesflow.schemas.common import HistoryEntryResponse, PropagationResponse
from salesflow.workflow.enums import ApprovalStatus


class SalesOrderCreate(BaseModel):
    """项目转订单"""
    project_id: int
    tax_rate: float = Field(default=0, ge=0, le=100)
    shipping_cost: float = Field(default=0, ge=0)
    discount: float = Field(default=0, ge=0)
    payment_terms: Optional[str] = None
    delivery_address: Optional[str] = None
    notes: Optional[str] = None


class ApprovalInput(BaseModel):
    decision: ApprovalStatus
    notes: Optional[str] = None


class FinancialsUpdate(BaseModel):
    tax_rate: Optional[float] = Field(default=None, ge=0, le=100)
    shipping_cost: Optional[float] = Field(default=None, ge=0)
    discount: Optional[float] = Field(default=None, ge=0)
    payment_terms: Optional[str] = None


class PaymentInput(BaseModel):
    """登记收款（金额校验由账务规则完成）"""
    amount: float
    method: Optional[str] = None
    reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None


class ShipmentInput(BaseModel):
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    shipped_at: Optional[datetime] = None
    items: Optional[List[Dict[str, Any]]] = None
    notes: Optional[str] = None


class SalesOrderLineResponse(BaseModel):
    id: int
    line_no: int
    catalog_item_id: Optional[int] = None
    item_code: Optional[str] = None
    description: Optional[str] = None
    quantity: int
    unit_price: float
    total_price: float
    production_status: str

    class Config:
        from_attributes = True


class PaymentRecordResponse(BaseModel):
    id: int
    amount: float
    method: Optional[str] = None
    reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    recorded_by: Optional[int] = None

    class Config:
        from_attributes = True


class ShipmentResponse(BaseModel):
    seq: int
    shipment_no: str
    tracking_number: str
    carrier: str
    shipped_at: Optional[datetime] = None
    items: Optional[List[Dict[str, Any]]] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class SalesOrderResponse(BaseModel):
    """订单响应"""
    id: int
    order_no: str
    project_id: int
    project_snapshot: Dict[str, Any]
    status: str
    status_display: str

    subtotal: float
    tax_rate: float
    tax_amount: float
    shipping_cost: float
    discount: float
    total_amount: float

    payment_terms: Optional[str] = None
    paid_amount: float
    unpaid_amount: float
    payment_status: str
    payment_status_display: str
    final_payment_confirmed: bool

    approval_status: str
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    approval_notes: Optional[str] = None

    delivery_address: Optional[str] = None
    delivered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    notes: Optional[str] = None

    created_by: int
    assigned_to: Optional[int] = None
    logistics_id: Optional[int] = None
    planner_id: Optional[int] = None
    created_at: Optional[datetime] = None

    lines: List[SalesOrderLineResponse] = []
    payment_records: List[PaymentRecordResponse] = []
    shipments: List[ShipmentResponse] = []
    history: List[HistoryEntryResponse] = []

    class Config:
        from_attributes = True


class SalesOrderSummary(BaseModel):
    id: int
    order_no: str
    project_snapshot: Dict[str, Any]
    status: str
    total_amount: float
    paid_amount: float
    payment_status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SalesOrderListResponse(BaseModel):
    data: List[SalesOrderSummary]
    total: int
    skip: int
    limit: int


class SalesOrderTransitionResponse(BaseModel):
    data: SalesOrderResponse
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    propagation: List[PropagationResponse] = []
    fully_applied: bool = True
