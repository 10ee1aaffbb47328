"""
跨实体传播

主转换提交并释放锁之后，逐个在关联实体自己的写锁内执行传播转换（系统身份，不做归属校验）。
传播失败不会回滚主转换，而是以 PropagationResult(succeeded=False) 返回给调用方对账。
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.errors import WorkflowError
from salesflow.core.logging_config import get_logger
from salesflow.models import ProductionOrder
from salesflow.services.effects import apply_effects
from salesflow.services.loaders import LOADERS
from salesflow.services.unit_of_work import write_scope
from salesflow.workflow.actor import SYSTEM_ACTOR
from salesflow.workflow.enums import EntityType
from salesflow.workflow.graphs import GRAPHS
from salesflow.workflow.guard import Propagation, fire

logger = get_logger(__name__)


@dataclass
class PropagationResult:
    entity_type: str
    entity_id: Optional[int]
    transition: str
    succeeded: bool
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class TransitionResult:
    """主转换结果 + 传播结果"""
    entity: Any
    from_status: Optional[str]
    to_status: Optional[str]
    propagation: List[PropagationResult] = field(default_factory=list)

    @property
    def fully_applied(self) -> bool:
        return all(p.succeeded for p in self.propagation)


async def _target_id(db: AsyncSession, source_type: EntityType, source_id: int, link_id, target_type: EntityType):
    if source_type == EntityType.SALES_ORDER and target_type == EntityType.PRODUCTION_ORDER:
        result = await db.execute(select(ProductionOrder.id).where(ProductionOrder.sales_order_id == source_id))
        return result.scalar_one_or_none()
    if source_type == EntityType.PRODUCTION_ORDER and target_type == EntityType.SALES_ORDER:
        return link_id
    return None


async def run_propagations(db: AsyncSession, source, propagations: List[Propagation]) -> List[PropagationResult]:
    results: List[PropagationResult] = []
    # 传播失败回滚会使会话内对象过期，先取出需要的字段
    source_type = source.__entity_type__
    source_id = source.id
    link_id = getattr(source, "sales_order_id", None)
    source_label = f"{source.__entity_type__.value}:{source.number}"
    source_meta = {"source_type": source.__entity_type__.value, "source_id": source.id, "source_no": source.number}

    for item in propagations:
        target_type = item.entity_type
        target_id = await _target_id(db, source_type, source_id, link_id, target_type)
        if target_id is None:
            logger.error(f"传播失败 {source_label} → {target_type.value}.{item.transition}: 未找到关联记录")
            results.append(PropagationResult(
                entity_type=target_type.value, entity_id=None, transition=item.transition,
                succeeded=False, error_code="link_missing", error_message="未找到关联记录",
            ))
            continue

        try:
            async with write_scope(db, (target_type, target_id)):
                target = await LOADERS[target_type](db, target_id, for_update=True)
                fired = fire(
                    GRAPHS[target_type], target, item.transition, SYSTEM_ACTOR,
                    authorize=False,
                    description=f"由 {source_meta['source_no']} 同步",
                    metadata=source_meta,
                )
                apply_effects(target, item.transition)
        except WorkflowError as e:
            logger.error(f"传播失败 {source_label} → {target_type.value}#{target_id}.{item.transition}: [{e.code}] {e.message}")
            results.append(PropagationResult(
                entity_type=target_type.value, entity_id=target_id, transition=item.transition,
                succeeded=False, error_code=e.code, error_message=e.message,
            ))
            continue

        logger.info(f"🔗 {source_label} → {target.number}: {fired.from_status} → {fired.to_status}")
        results.append(PropagationResult(
            entity_type=target_type.value, entity_id=target_id, transition=item.transition,
            succeeded=True, from_status=fired.from_status, to_status=fired.to_status,
        ))
    return results
