"""商务项目 Schema"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from salesflow.schemas.common import HistoryEntryResponse, PropagationResponse


class ProjectCreate(BaseModel):
    """立项"""
    name: str = Field(..., min_length=1, max_length=200)
    client_name: str = Field(..., min_length=1, max_length=200)
    client_contact: Optional[str] = None
    industry: Optional[str] = None
    description: Optional[str] = None
    owner_id: Optional[int] = None


class TechnicalItemsInput(BaseModel):
    items: List[Dict[str, Any]]


class SubmitTechnicalListInput(BaseModel):
    notes: Optional[str] = None


class BomLineInput(BaseModel):
    catalog_item_id: Optional[int] = None
    description: Optional[str] = None
    quantity: int
    unit_price: Optional[float] = Field(default=None, ge=0)  # 未关联产品时必填
    price_type: Optional[str] = None
    notes: Optional[str] = None


class BomInput(BaseModel):
    lines: List[BomLineInput]


class BomLineResponse(BaseModel):
    line_no: int
    catalog_item_id: Optional[int] = None
    description: Optional[str] = None
    quantity: int
    price_type: Optional[str] = None
    unit_price: Optional[float] = None
    total_price: Optional[float] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class ProjectResponse(BaseModel):
    """项目响应"""
    id: int
    project_no: str
    name: str
    client_name: str
    client_contact: Optional[str] = None
    industry: Optional[str] = None
    description: Optional[str] = None
    status: str
    owner_id: int
    technical_support_id: Optional[int] = None
    business_engineer_id: Optional[int] = None
    technical_items: Optional[List[Dict[str, Any]]] = None
    technical_versions: Optional[List[Dict[str, Any]]] = None
    technical_reject_reason: Optional[str] = None
    quote_total: Optional[float] = None
    quoted_at: Optional[datetime] = None
    lost_reason: Optional[str] = None
    is_won: bool
    is_terminal: bool
    is_locked: bool
    locked_at: Optional[datetime] = None
    locked_reason: Optional[str] = None
    created_by: int
    created_at: Optional[datetime] = None
    bom_lines: List[BomLineResponse] = []
    history: List[HistoryEntryResponse] = []

    class Config:
        from_attributes = True


class ProjectSummary(BaseModel):
    """列表项"""
    id: int
    project_no: str
    name: str
    client_name: str
    status: str
    owner_id: int
    is_locked: bool
    quote_total: Optional[float] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectListResponse(BaseModel):
    data: List[ProjectSummary]
    total: int
    skip: int
    limit: int


class ProjectTransitionResponse(BaseModel):
    data: ProjectResponse
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    propagation: List[PropagationResponse] = []
    fully_applied: bool = True
