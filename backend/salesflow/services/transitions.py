"""
通用的“加锁 → 加载 → 守卫 → 修改 → 审计 → 提交 → 传播”流程
"""

from typing import Any, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.errors import IllegalTransition, PreconditionFailed
from salesflow.core.logging_config import get_logger
from salesflow.services.effects import apply_effects
from salesflow.services.loaders import LOADERS
from salesflow.services.propagation import TransitionResult, run_propagations
from salesflow.services.unit_of_work import write_scope
from salesflow.workflow.actor import Actor
from salesflow.workflow.audit import append_history
from salesflow.workflow.enums import EntityType, Visibility
from salesflow.workflow.graphs import GRAPHS
from salesflow.workflow.guard import fire, not_locked
from salesflow.workflow.ownership import ensure_authorized

logger = get_logger(__name__)

Mutator = Callable[[Any, Dict[str, Any]], None]


def log_transition(entity, from_status, to_status, actor: Actor) -> None:
    logger.info(f"{entity.number}: {from_status} → {to_status} by {actor.name}({actor.role.value})")


async def run_transition(
    db: AsyncSession,
    entity_type: EntityType,
    entity_id: int,
    name: str,
    actor: Actor,
    context: Optional[Dict[str, Any]] = None,
    mutate: Optional[Mutator] = None,
    description: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    authorize: bool = True,
) -> TransitionResult:
    context = context or {}
    loader = LOADERS[entity_type]

    async with write_scope(db, (entity_type, entity_id)):
        entity = await loader(db, entity_id, for_update=True)
        fired = fire(
            GRAPHS[entity_type], entity, name, actor, context,
            authorize=authorize, description=description, metadata=metadata,
        )
        if mutate is not None:
            extra = mutate(entity, context)
            if extra:
                fired.entry.meta_data = {**(fired.entry.meta_data or {}), **extra}
        apply_effects(entity, name, context)
    log_transition(entity, fired.from_status, fired.to_status, actor)

    propagation = []
    if fired.propagations:
        propagation = await run_propagations(db, entity, fired.propagations)
        entity = await loader(db, entity_id)

    return TransitionResult(entity, fired.from_status, fired.to_status, propagation)


async def run_operation(
    db: AsyncSession,
    entity_type: EntityType,
    entity_id: int,
    operation: str,
    actor: Actor,
    label: str,
    roles,
    allowed_statuses,
    mutate: Mutator,
    context: Optional[Dict[str, Any]] = None,
    preconditions=(),
    visibility: Visibility = Visibility.INTERNAL,
    locked_first: bool = False,
):
    """
    不改变状态的写操作（改 BOM、收款、保存报告等）

    校验顺序与状态转换一致：状态允许 → 角色/归属 → 前置条件；
    locked_first：先判项目锁定再判状态，锁定的项目一律报 project_locked。
    mutate 返回的字典合并进历史记录的 metadata。
    """
    context = context or {}
    async with write_scope(db, (entity_type, entity_id)):
        entity = await LOADERS[entity_type](db, entity_id, for_update=True)
        if locked_first:
            condition = not_locked(entity, context)
            if condition:
                raise PreconditionFailed(condition)
        if entity.status not in [getattr(s, "value", s) for s in allowed_statuses]:
            raise IllegalTransition(entity_type.value, entity.status, operation)
        ensure_authorized(actor, entity, label, roles)
        for check in preconditions:
            condition = check(entity, context)
            if condition:
                raise PreconditionFailed(condition)
        extra = mutate(entity, context) or {}
        append_history(
            entity, operation, actor,
            description=context.get("description") or label,
            metadata=extra,
            visibility=visibility,
        )
    logger.info(f"{entity.number}: {label} by {actor.name}({actor.role.value})")
    return entity
