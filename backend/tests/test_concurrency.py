import asyncio
from decimal import Decimal

import pytest

from salesflow.core.locks import record_locks
from salesflow.services import sales_orders
from salesflow.services.loaders import load_sales_order
from salesflow.workflow.enums import PaymentStatus


@pytest.mark.asyncio
async def test_concurrent_payments_do_not_lose_updates(session_factory, actors, confirmed_order_id):
    async def pay(amount):
        async with session_factory() as session:
            await sales_orders.record_payment(session, confirmed_order_id, actors["sales"], amount)

    await asyncio.gather(*[pay(100) for _ in range(10)])

    async with session_factory() as session:
        order = await load_sales_order(session, confirmed_order_id)
        assert order.paid_amount == Decimal("1000")
        assert len(order.payment_records) == 10
        assert order.payment_status == PaymentStatus.PARTIAL.value
        assert [h.seq for h in order.history] == list(range(1, len(order.history) + 1))
        assert [h.operation for h in order.history].count("record_payment") == 10
    assert record_locks.held_count() == 0


@pytest.mark.asyncio
async def test_concurrent_transitions_fire_once(session_factory, actors, confirmed_order_id):
    outcomes = []

    async def cancel():
        async with session_factory() as session:
            try:
                await sales_orders.cancel(session, confirmed_order_id, actors["sales"], "客户撤单")
                outcomes.append("ok")
            except Exception as e:
                outcomes.append(getattr(e, "code", type(e).__name__))

    await asyncio.gather(*[cancel() for _ in range(5)])

    assert sorted(outcomes) == ["illegal_transition"] * 4 + ["ok"]
    async with session_factory() as session:
        order = await load_sales_order(session, confirmed_order_id)
        assert [h.operation for h in order.history].count("cancel") == 1
