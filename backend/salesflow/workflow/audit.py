"""
审计记录

append_history 只负责按顺序追加一条历史，不做任何业务判断。
调用方需已持有该实体的写锁，且 entity.history 已加载。
"""

from datetime import datetime
from typing import Any, Dict, Optional

from salesflow.workflow.actor import Actor
from salesflow.workflow.enums import EntityType, Visibility


def _history_class(entity_type: EntityType):
    from salesflow.models import ProjectHistory, SalesOrderHistory, ProductionLog, TicketHistory
    return {
        EntityType.PROJECT: ProjectHistory,
        EntityType.SALES_ORDER: SalesOrderHistory,
        EntityType.PRODUCTION_ORDER: ProductionLog,
        EntityType.SERVICE_TICKET: TicketHistory,
    }[entity_type]


def _value(status) -> Optional[str]:
    if status is None:
        return None
    return getattr(status, "value", status)


def append_history(
    entity,
    operation: str,
    actor: Actor,
    description: Optional[str] = None,
    from_status=None,
    to_status=None,
    metadata: Optional[Dict[str, Any]] = None,
    visibility: Visibility = Visibility.INTERNAL,
):
    cls = _history_class(entity.__entity_type__)
    entry = cls(
        seq=len(entity.history) + 1,
        operation=operation,
        actor_id=actor.id,
        actor_name=actor.name,
        actor_role=actor.role.value,
        occurred_at=datetime.utcnow(),
        from_status=_value(from_status),
        to_status=_value(to_status),
        description=description,
        meta_data=dict(metadata) if metadata else {},
        visibility=_value(visibility),
    )
    entity.history.append(entry)
    return entry
