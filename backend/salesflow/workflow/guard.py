"""
状态图与转换守卫

每类实体一张显式状态图：(当前状态, 操作名) → Transition。
fire() 的校验顺序固定：
    (a) 当前状态存在该出边，否则 IllegalTransition
    (b) 角色白名单 + 归属校验，否则 Forbidden
    (c) 前置条件逐条成立，否则 PreconditionFailed(condition)
全部通过后才修改状态并追加历史；跨实体传播只登记在返回结果中，由调用方在主写入提交后执行。
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Type

from salesflow.core.errors import IllegalTransition, PreconditionFailed
from salesflow.workflow.actor import Actor
from salesflow.workflow.audit import append_history
from salesflow.workflow.enums import EntityType, Role, Visibility
from salesflow.workflow.ownership import Relation, claim_if_unassigned, ensure_authorized

# 前置条件：返回未满足的条件名，满足时返回 None
Precondition = Callable[[Any, Dict[str, Any]], Optional[str]]


@dataclass(frozen=True)
class Propagation:
    """主转换提交后需要在关联实体上触发的转换"""
    entity_type: EntityType
    transition: str


@dataclass(frozen=True)
class Transition:
    name: str
    sources: Tuple[enum.Enum, ...]
    target: enum.Enum
    label: str
    roles: FrozenSet[Role] = frozenset()
    relation: Relation = Relation.ANY
    claim_field: Optional[str] = None
    preconditions: Tuple[Precondition, ...] = ()
    propagations: Tuple[Propagation, ...] = ()
    visibility: Visibility = Visibility.INTERNAL


@dataclass
class Fired:
    transition: Transition
    from_status: str
    to_status: str
    entry: Any = None
    propagations: List[Propagation] = field(default_factory=list)


class StateGraph:
    def __init__(self, entity_type: EntityType, status_enum: Type[enum.Enum], transitions: Iterable[Transition]):
        self.entity_type = entity_type
        self.status_enum = status_enum
        self._edges: Dict[Tuple[enum.Enum, str], Transition] = {}
        self._by_name: Dict[str, List[Transition]] = {}
        for t in transitions:
            for source in t.sources:
                key = (source, t.name)
                if key in self._edges:
                    raise ValueError(f"重复的状态边: {entity_type.value} {source.value} --{t.name}-->")
                self._edges[key] = t
            self._by_name.setdefault(t.name, []).append(t)

    def edge(self, status, name: str) -> Optional[Transition]:
        return self._edges.get((self.status_enum(status), name))

    def available(self, status) -> List[str]:
        current = self.status_enum(status)
        return sorted(name for (source, name) in self._edges if source == current)

    def transition_names(self) -> List[str]:
        return sorted(self._by_name)

    def targets(self, status) -> List[enum.Enum]:
        current = self.status_enum(status)
        return [t.target for (source, _), t in self._edges.items() if source == current]

    def terminal_states(self) -> List[enum.Enum]:
        return [s for s in self.status_enum if not self.targets(s)]


def fire(
    graph: StateGraph,
    entity,
    name: str,
    actor: Actor,
    context: Optional[Dict[str, Any]] = None,
    authorize: bool = True,
    description: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Fired:
    """执行一次受守卫的状态转换（不提交）"""
    context = context or {}
    from_status = entity.status
    transition = graph.edge(from_status, name)
    if transition is None:
        raise IllegalTransition(graph.entity_type.value, from_status, name)

    if authorize:
        ensure_authorized(
            actor, entity, transition.label, transition.roles, transition.relation, transition.claim_field
        )

    for check in transition.preconditions:
        condition = check(entity, context)
        if condition:
            raise PreconditionFailed(condition)

    if authorize and transition.relation == Relation.CLAIMABLE:
        claim_if_unassigned(actor, entity, transition.claim_field, transition.roles)

    entity.status = transition.target.value
    entry = append_history(
        entity,
        operation=name,
        actor=actor,
        description=description or transition.label,
        from_status=from_status,
        to_status=transition.target,
        metadata=metadata,
        visibility=transition.visibility,
    )
    return Fired(
        transition=transition,
        from_status=from_status,
        to_status=transition.target.value,
        entry=entry,
        propagations=list(transition.propagations),
    )


# ===== 常用前置条件 =====

def required_input(key: str, condition: Optional[str] = None) -> Precondition:
    """context 中必须提供非空字段"""
    def check(entity, context):
        value = context.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            return condition or f"{key}_required"
        return None
    check.__name__ = f"required_{key}"
    return check


def not_locked(entity, context):
    return "project_locked" if getattr(entity, "is_locked", False) else None
