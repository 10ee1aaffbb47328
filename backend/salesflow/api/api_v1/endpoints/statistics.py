"""统计报表API"""

from typing import Any, Dict
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.deps import get_db
from salesflow.services import statistics
from salesflow.services.scheduler import get_scheduler_status
from salesflow.workflow.enums import EntityType

router = APIRouter()


@router.get("/dashboard")
async def get_dashboard(
    *,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """获取仪表盘数据"""
    return await statistics.dashboard(db)


@router.get("/status-counts/{entity_type}", response_model=Dict[str, int])
async def get_status_counts(
    *,
    db: AsyncSession = Depends(get_db),
    entity_type: EntityType) -> Any:
    """按状态统计某类实体数量"""
    return await statistics.status_counts(db, entity_type)


@router.get("/scheduler")
async def get_scheduler() -> Any:
    return get_scheduler_status()
