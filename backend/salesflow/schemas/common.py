"""通用 Schema：历史记录、传播结果、原因类请求"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class HistoryEntryResponse(BaseModel):
    """历史记录"""
    seq: int
    operation: str
    actor_id: Optional[int] = None
    actor_name: Optional[str] = None
    actor_role: Optional[str] = None
    occurred_at: datetime
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    description: Optional[str] = None
    meta_data: Optional[Dict[str, Any]] = None
    visibility: Optional[str] = None

    class Config:
        from_attributes = True


class PropagationResponse(BaseModel):
    """跨实体传播结果"""
    entity_type: str
    entity_id: Optional[int] = None
    transition: str
    succeeded: bool
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    class Config:
        from_attributes = True


class ReasonInput(BaseModel):
    reason: Optional[str] = None


class NotesInput(BaseModel):
    notes: Optional[str] = None


class AssignInput(BaseModel):
    engineer_id: int


class AssigneeInput(BaseModel):
    """指派物流专员 / 生产计划员 / 质检员"""
    user_id: int


class ErrorResponse(BaseModel):
    code: str
    message: str
    detail: Dict[str, Any] = Field(default_factory=dict)
