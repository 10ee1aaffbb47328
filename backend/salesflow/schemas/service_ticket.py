"""售后工单 Schema"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from salesflow.schemas.common import HistoryEntryResponse, PropagationResponse
from salesflow.workflow.enums import CloseReason


class TicketCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    client_name: Optional[str] = None
    sales_order_id: Optional[int] = None
    ticket_type: str = "维修"
    priority: str = "Normal"


class SolutionInput(BaseModel):
    solution: Optional[str] = None


class ReportInput(BaseModel):
    """最终报告"""
    content: Optional[str] = None
    root_cause: Optional[str] = None
    actions_taken: Optional[str] = None


class CustomerReplyInput(BaseModel):
    comments: Optional[str] = None


class CloseInput(BaseModel):
    close_reason: CloseReason
    feedback: Optional[Dict[str, Any]] = None


class ReopenInput(BaseModel):
    """重新打开：原因与说明均需填写（缺失时由流程返回 422）"""
    reason: Optional[str] = None
    comments: Optional[str] = None


class PartyResponse(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None
    role: Optional[str] = None


class TicketResponse(BaseModel):
    id: int
    ticket_no: str
    sales_order_id: Optional[int] = None
    ticket_type: Optional[str] = None
    priority: Optional[str] = None
    title: str
    description: Optional[str] = None
    client_name: Optional[str] = None
    status: str
    created_by: PartyResponse
    assigned_to: Optional[PartyResponse] = None
    accepted_at: Optional[datetime] = None
    solution: Optional[str] = None
    final_report: Optional[Dict[str, Any]] = None
    resolved_at: Optional[datetime] = None
    closed_by: Optional[PartyResponse] = None
    closed_at: Optional[datetime] = None
    close_reason: Optional[str] = None
    customer_feedback: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    history: List[HistoryEntryResponse] = []

    class Config:
        from_attributes = True


class TicketSummary(BaseModel):
    id: int
    ticket_no: str
    title: str
    client_name: Optional[str] = None
    status: str
    priority: Optional[str] = None
    assigned_to_id: Optional[int] = None
    assigned_to_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TicketListResponse(BaseModel):
    data: List[TicketSummary]
    total: int
    skip: int
    limit: int


class TicketTransitionResponse(BaseModel):
    data: TicketResponse
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    propagation: List[PropagationResponse] = []
    fully_applied: bool = True
