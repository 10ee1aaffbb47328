"""
实体加载

写操作统一通过这里加载：一次性预加载明细、历史等集合（异步会话不能懒加载），
并以 populate_existing 覆盖会话中的旧值，保证锁内读到的是最新状态。
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salesflow.core.errors import NotFound
from salesflow.models import (
    CatalogItem, CommercialProject, ProductionOrder, ProjectBomLine, SalesOrder, ServiceTicket, User,
)
from salesflow.workflow.enums import EntityType


def _locked(stmt, for_update: bool):
    stmt = stmt.execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    return stmt


async def load_project(db: AsyncSession, project_id: int, for_update: bool = False) -> CommercialProject:
    stmt = (
        select(CommercialProject)
        .options(
            selectinload(CommercialProject.bom_lines).selectinload(ProjectBomLine.catalog_item),
            selectinload(CommercialProject.history),
        )
        .where(CommercialProject.id == project_id)
    )
    project = (await db.execute(_locked(stmt, for_update))).scalar_one_or_none()
    if project is None:
        raise NotFound("商务项目", project_id)
    return project


async def load_sales_order(db: AsyncSession, order_id: int, for_update: bool = False) -> SalesOrder:
    stmt = (
        select(SalesOrder)
        .options(
            selectinload(SalesOrder.lines),
            selectinload(SalesOrder.payment_records),
            selectinload(SalesOrder.shipments),
            selectinload(SalesOrder.history),
        )
        .where(SalesOrder.id == order_id)
    )
    order = (await db.execute(_locked(stmt, for_update))).scalar_one_or_none()
    if order is None:
        raise NotFound("合同订单", order_id)
    return order


async def load_production_order(db: AsyncSession, production_id: int, for_update: bool = False) -> ProductionOrder:
    stmt = (
        select(ProductionOrder)
        .options(selectinload(ProductionOrder.items), selectinload(ProductionOrder.history))
        .where(ProductionOrder.id == production_id)
    )
    production = (await db.execute(_locked(stmt, for_update))).scalar_one_or_none()
    if production is None:
        raise NotFound("生产订单", production_id)
    return production


async def load_ticket(db: AsyncSession, ticket_id: int, for_update: bool = False) -> ServiceTicket:
    stmt = (
        select(ServiceTicket)
        .options(selectinload(ServiceTicket.history))
        .where(ServiceTicket.id == ticket_id)
    )
    ticket = (await db.execute(_locked(stmt, for_update))).scalar_one_or_none()
    if ticket is None:
        raise NotFound("售后工单", ticket_id)
    return ticket


async def load_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("用户", user_id)
    return user


async def load_catalog_item(db: AsyncSession, item_id: int) -> CatalogItem:
    result = await db.execute(
        select(CatalogItem).options(selectinload(CatalogItem.price_tiers)).where(CatalogItem.id == item_id)
    )
    item = result.scalar_one_or_none()
    if item is None or not item.is_active:
        raise NotFound("产品", item_id)
    return item


LOADERS = {
    EntityType.PROJECT: load_project,
    EntityType.SALES_ORDER: load_sales_order,
    EntityType.PRODUCTION_ORDER: load_production_order,
    EntityType.SERVICE_TICKET: load_ticket,
}
