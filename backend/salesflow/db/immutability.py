"""
ORM 层只追加保护

受保护对象：
- 各实体历史记录（HistoryEntryMixin 子类）
- 收款记录 PaymentRecord、发货记录 Shipment

规则：
- 任何 UPDATE 一律拒绝
- DELETE 仅在所属实体本身被删除（级联）时放行

应用启动时调用 register_immutability_listeners()，重复调用无副作用。
"""

from sqlalchemy import event
from sqlalchemy.orm import object_session

from salesflow.core.errors import AuditTrailViolation
from salesflow.core.logging_config import get_logger

logger = get_logger(__name__)


def _protected_classes():
    from salesflow.models.history import HistoryEntryMixin
    from salesflow.models.sales_order import PaymentRecord, Shipment
    return (HistoryEntryMixin, PaymentRecord, Shipment)


def _owner_is_deleted(session, target) -> bool:
    fk_attr, owner_name = target.__immutable_owner__
    owner_id = getattr(target, fk_attr)
    return any(
        type(obj).__name__ == owner_name and obj.id == owner_id
        for obj in session.deleted
    )


def _block_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    logger.error(f"拒绝修改只追加记录: {target!r}")
    raise AuditTrailViolation(
        f"{type(target).__name__} 写入后不可修改",
        {"record": type(target).__name__, "id": target.id},
    )


def _block_delete(mapper, connection, target):
    session = object_session(target)
    if session is not None and _owner_is_deleted(session, target):
        return
    logger.error(f"拒绝删除只追加记录: {target!r}")
    raise AuditTrailViolation(
        f"{type(target).__name__} 不可单独删除",
        {"record": type(target).__name__, "id": target.id},
    )


_registered = False


def register_immutability_listeners() -> None:
    global _registered
    if _registered:
        return
    for cls in _protected_classes():
        event.listen(cls, "before_update", _block_update, propagate=True)
        event.listen(cls, "before_delete", _block_delete, propagate=True)
    _registered = True
    logger.info("🔒 只追加记录保护已启用")
