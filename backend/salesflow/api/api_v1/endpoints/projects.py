"""商务项目API"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.deps import get_actor, get_db
from salesflow.schemas.common import AssignInput, HistoryEntryResponse, NotesInput, ReasonInput
from salesflow.schemas.project import (
    BomInput, ProjectCreate, ProjectListResponse, ProjectResponse,
    ProjectTransitionResponse, SubmitTechnicalListInput, TechnicalItemsInput,
)
from salesflow.services import projects
from salesflow.services.loaders import load_project
from salesflow.workflow.actor import Actor
from salesflow.workflow.graphs import PROJECT_GRAPH

from .common import transition_payload

router = APIRouter()


@router.get("/", response_model=ProjectListResponse)
async def list_projects(
    *,
    db: AsyncSession = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    owner_id: Optional[int] = Query(None),
    keyword: Optional[str] = Query(None)) -> Any:
    """获取项目列表"""
    return await projects.list_projects(
        db, status=status, owner_id=owner_id, keyword=keyword, skip=skip, limit=limit
    )


@router.post("/", response_model=ProjectResponse)
async def create_project(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_in: ProjectCreate) -> Any:
    """立项"""
    return await projects.create_project(db, actor, **project_in.model_dump())


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    *,
    db: AsyncSession = Depends(get_db),
    project_id: int) -> Any:
    """获取项目详情"""
    return await load_project(db, project_id)


@router.get("/{project_id}/history", response_model=List[HistoryEntryResponse])
async def get_project_history(
    *,
    db: AsyncSession = Depends(get_db),
    project_id: int) -> Any:
    project = await load_project(db, project_id)
    return project.history


@router.get("/{project_id}/transitions", response_model=List[str])
async def get_available_transitions(
    *,
    db: AsyncSession = Depends(get_db),
    project_id: int) -> Any:
    """当前状态可执行的操作"""
    project = await load_project(db, project_id)
    return PROJECT_GRAPH.available(project.status)


@router.post("/{project_id}/assign-technical-support", response_model=ProjectTransitionResponse)
async def assign_technical_support(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int,
    body: AssignInput) -> Any:
    result = await projects.assign_technical_support(db, project_id, actor, body.engineer_id)
    return transition_payload(result)


@router.post("/{project_id}/assign-business-engineer", response_model=ProjectResponse)
async def assign_business_engineer(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int,
    body: AssignInput) -> Any:
    """指派商务工程师"""
    return await projects.assign_business_engineer(db, project_id, actor, body.engineer_id)


@router.post("/{project_id}/technical-items", response_model=ProjectResponse)
async def update_technical_items(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int,
    body: TechnicalItemsInput) -> Any:
    """保存技术选型清单草稿"""
    return await projects.update_technical_items(db, project_id, actor, body.items)


@router.post("/{project_id}/submit-technical-list", response_model=ProjectTransitionResponse)
async def submit_technical_list(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int,
    body: Optional[SubmitTechnicalListInput] = None) -> Any:
    notes = body.notes if body else None
    return transition_payload(await projects.submit_technical_list(db, project_id, actor, notes))


@router.post("/{project_id}/reject-technical-list", response_model=ProjectTransitionResponse)
async def reject_technical_list(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int,
    body: ReasonInput) -> Any:
    return transition_payload(await projects.reject_technical_list(db, project_id, actor, body.reason))


@router.post("/{project_id}/bom", response_model=ProjectResponse)
async def update_bom(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int,
    body: BomInput) -> Any:
    """更新报价BOM（项目锁定后拒绝）"""
    lines = [line.model_dump() for line in body.lines]
    return await projects.update_bom(db, project_id, actor, lines)


@router.post("/{project_id}/submit-quotation", response_model=ProjectTransitionResponse)
async def submit_quotation(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int) -> Any:
    return transition_payload(await projects.submit_quotation(db, project_id, actor))


@router.post("/{project_id}/revise-quotation", response_model=ProjectTransitionResponse)
async def revise_quotation(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int,
    body: Optional[ReasonInput] = None) -> Any:
    reason = body.reason if body else None
    return transition_payload(await projects.revise_quotation(db, project_id, actor, reason))


@router.post("/{project_id}/mark-won", response_model=ProjectTransitionResponse)
async def mark_won(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int) -> Any:
    return transition_payload(await projects.mark_won(db, project_id, actor))


@router.post("/{project_id}/mark-lost", response_model=ProjectTransitionResponse)
async def mark_lost(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int,
    body: ReasonInput) -> Any:
    return transition_payload(await projects.mark_lost(db, project_id, actor, body.reason))


@router.post("/{project_id}/submit-contract", response_model=ProjectTransitionResponse)
async def submit_contract(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int) -> Any:
    return transition_payload(await projects.submit_contract(db, project_id, actor))


@router.post("/{project_id}/approve-contract", response_model=ProjectTransitionResponse)
async def approve_contract(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int,
    body: Optional[NotesInput] = None) -> Any:
    notes = body.notes if body else None
    return transition_payload(await projects.approve_contract(db, project_id, actor, notes))


@router.post("/{project_id}/sign-contract", response_model=ProjectTransitionResponse)
async def sign_contract(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    project_id: int) -> Any:
    return transition_payload(await projects.sign_contract(db, project_id, actor))
