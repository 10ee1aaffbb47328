from decimal import Decimal

import pytest

from salesflow.services import sales_orders, statistics
from salesflow.services.loaders import load_sales_order
from tests.flows import drive_project_to_won


@pytest.mark.asyncio
async def test_sales_summary_keeps_two_decimal_places(db, actors, catalog):
    order_ids = []
    for name in ("一号线", "二号线", "三号线"):
        project = await drive_project_to_won(db, actors, catalog, name=name)
        order = await sales_orders.create_order_from_project(db, project.id, actors["sales"])
        order_ids.append(order.id)

    # 0.1 + 0.2 在浮点下不精确
    for order_id, amount in zip(order_ids, ("0.10", "0.20", "0.40")):
        order = await load_sales_order(db, order_id)
        order.total_amount = Decimal(amount)
    await db.commit()

    summary = await statistics.sales_summary(db)
    assert summary["order_count"] == 3
    assert str(summary["total_revenue"]) == "0.70"
    assert str(summary["total_paid"]) == "0.00"
    assert str(summary["total_unpaid"]) == "0.70"


@pytest.mark.asyncio
async def test_cancelled_orders_are_excluded(db, actors, catalog):
    project = await drive_project_to_won(db, actors, catalog)
    order = await sales_orders.create_order_from_project(db, project.id, actors["sales"])
    await sales_orders.cancel(db, order.id, actors["sales"], "客户撤单")

    summary = await statistics.sales_summary(db)
    assert summary["order_count"] == 0
    assert summary["total_revenue"] == Decimal("0")
