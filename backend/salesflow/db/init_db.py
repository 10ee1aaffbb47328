import asyncio

from salesflow.db.session import engine
from salesflow.db.base import Base
from salesflow.db.immutability import register_immutability_listeners

# 导入所有模型，确保表能被创建
from salesflow.models import (  # noqa: F401
    User, CatalogItem, PriceTier,
    CommercialProject, ProjectBomLine, ProjectHistory,
    SalesOrder, SalesOrderLine, PaymentRecord, Shipment, SalesOrderHistory,
    ProductionOrder, ProductionItem, ProductionLog,
    ServiceTicket, TicketHistory,
)


async def ensure_tables_exist(bind=None) -> None:
    """
    确保数据库表存在（应用启动时调用）
    """
    register_immutability_listeners()
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


if __name__ == "__main__":
    asyncio.run(ensure_tables_exist())
