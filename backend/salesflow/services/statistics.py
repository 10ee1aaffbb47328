"""
统计（只读，允许读到稍旧的快照）
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.models import CommercialProject, ProductionOrder, SalesOrder, ServiceTicket
from salesflow.workflow.enums import EntityType, SalesOrderStatus
from salesflow.workflow.pricing import TWO_PLACES, to_decimal

STATUS_COLUMNS = {
    EntityType.PROJECT: CommercialProject.status,
    EntityType.SALES_ORDER: SalesOrder.status,
    EntityType.PRODUCTION_ORDER: ProductionOrder.status,
    EntityType.SERVICE_TICKET: ServiceTicket.status,
}


async def status_counts(db: AsyncSession, entity_type: EntityType) -> Dict[str, int]:
    column = STATUS_COLUMNS[EntityType(entity_type)]
    result = await db.execute(select(column, func.count()).group_by(column))
    return {status: count for status, count in result.all()}


async def sales_summary(db: AsyncSession) -> Dict[str, Decimal]:
    """订单金额汇总（不含已取消）"""
    result = await db.execute(
        select(
            func.coalesce(func.sum(SalesOrder.total_amount), 0),
            func.coalesce(func.sum(SalesOrder.paid_amount), 0),
            func.count(SalesOrder.id),
        ).where(SalesOrder.status != SalesOrderStatus.CANCELLED.value)
    )
    total, paid, count = result.one()
    # SQLite 的 SUM 返回浮点，收回到两位小数
    total = to_decimal(total).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    paid = to_decimal(paid).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return {
        "order_count": count,
        "total_revenue": total,
        "total_paid": paid,
        "total_unpaid": max(total - paid, Decimal("0")),
    }


async def payment_status_counts(db: AsyncSession) -> Dict[str, int]:
    result = await db.execute(
        select(SalesOrder.payment_status, func.count())
        .where(SalesOrder.status != SalesOrderStatus.CANCELLED.value)
        .group_by(SalesOrder.payment_status)
    )
    return {status: count for status, count in result.all()}


async def dashboard(db: AsyncSession) -> dict:
    return {
        "projects": await status_counts(db, EntityType.PROJECT),
        "sales_orders": await status_counts(db, EntityType.SALES_ORDER),
        "production_orders": await status_counts(db, EntityType.PRODUCTION_ORDER),
        "service_tickets": await status_counts(db, EntityType.SERVICE_TICKET),
        "payments": await payment_status_counts(db),
        "sales": await sales_summary(db),
    }
