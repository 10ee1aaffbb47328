"""
写入作用域

    async with write_scope(db, (EntityType.SALES_ORDER, order_id)):
        order = await load_sales_order(db, order_id, for_update=True)
        ...

进入时按记录加锁，正常退出时提交；任何异常都会回滚。
SQLAlchemy 异常统一转换为 StorageError，调用方不能假定已提交。
"""

from contextlib import asynccontextmanager
from typing import Hashable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.errors import StorageError, WorkflowError
from salesflow.core.locks import record_locks
from salesflow.core.logging_config import get_logger

logger = get_logger(__name__)


def _key(key):
    entity_type, entity_id = key
    return (getattr(entity_type, "value", entity_type), entity_id)


@asynccontextmanager
async def write_scope(db: AsyncSession, *keys: Hashable):
    async with record_locks.hold_many([_key(k) for k in keys]):
        try:
            yield
            await db.commit()
        except WorkflowError as e:
            await db.rollback()
            logger.warning(f"操作被拒绝 [{e.code}]: {e.message}")
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"存储异常，已回滚: {e}")
            raise StorageError("存储异常，操作未提交", {"error": type(e).__name__}) from e
        except BaseException:
            await db.rollback()
            raise
