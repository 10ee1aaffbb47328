"""
归属校验

判定顺序：
1. 管理员始终放行
2. 角色在其业务域内整体放行（销售经理：项目 / 合同订单 / 售后工单）
3. ANY：操作人是实体的创建人、负责人或指派人之一
4. CLAIMABLE（仅工单受理）：操作人就是认领字段上的人；或认领字段为空且角色有资格认领
否则拒绝，原因 ownership_violation。

只使用操作人的实时 id 与角色，不读取历史中的姓名角色副本。
"""

import enum
from dataclasses import dataclass
from typing import Iterable, Optional

from salesflow.core.errors import Forbidden
from salesflow.workflow.actor import Actor
from salesflow.workflow.enums import EntityType, Role

OWNERSHIP_VIOLATION = "ownership_violation"
ROLE_NOT_PERMITTED = "role_not_permitted"

ROLE_BYPASS = {
    Role.SALES_MANAGER: {EntityType.PROJECT, EntityType.SALES_ORDER, EntityType.SERVICE_TICKET},
}


class Relation(str, enum.Enum):
    ANY = "any"
    CLAIMABLE = "claimable"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None


ALLOW = Decision(True)


def related_ids(entity) -> set:
    return {getattr(entity, field) for field in entity.__ownership_fields__} - {None}


def authorize(
    actor: Actor,
    entity,
    relation: Relation = Relation.ANY,
    claim_field: Optional[str] = None,
    eligible_roles: Iterable[Role] = (),
) -> Decision:
    if actor.is_admin:
        return ALLOW
    if entity.__entity_type__ in ROLE_BYPASS.get(actor.role, ()):
        return ALLOW

    if relation == Relation.CLAIMABLE:
        holder = getattr(entity, claim_field)
        if holder is not None and holder == actor.id:
            return ALLOW
        if holder is None and actor.role in set(eligible_roles):
            return ALLOW
        return Decision(False, OWNERSHIP_VIOLATION)

    if actor.id is not None and actor.id in related_ids(entity):
        return ALLOW
    return Decision(False, OWNERSHIP_VIOLATION)


def ensure_role(actor: Actor, roles: Iterable[Role], operation: str) -> None:
    if actor.is_admin or actor.role in set(roles):
        return
    raise Forbidden(f"角色 {actor.role.display} 无权执行 {operation}", reason=ROLE_NOT_PERMITTED)


def ensure_authorized(
    actor: Actor,
    entity,
    operation: str,
    roles: Iterable[Role],
    relation: Relation = Relation.ANY,
    claim_field: Optional[str] = None,
) -> None:
    """角色白名单 + 归属校验，失败抛 Forbidden"""
    roles = set(roles)
    ensure_role(actor, roles, operation)
    decision = authorize(actor, entity, relation, claim_field, roles)
    if not decision.allowed:
        raise Forbidden(f"{actor.name} 与 {entity.number} 无归属关系，无权执行 {operation}", reason=decision.reason)


def claim_if_unassigned(actor: Actor, entity, claim_field: Optional[str], roles: Iterable[Role]) -> bool:
    """认领：字段为空且操作人以本角色身份操作时，写入操作人 id"""
    if claim_field is None or actor.id is None or getattr(entity, claim_field) is not None:
        return False
    if actor.is_admin or entity.__entity_type__ in ROLE_BYPASS.get(actor.role, ()):
        return False
    if actor.role not in set(roles):
        return False
    setattr(entity, claim_field, actor.id)
    return True
