from decimal import Decimal
from itertools import permutations
from types import SimpleNamespace

import pytest

from salesflow.core.errors import InvalidCatalogItem, InvalidPaymentAmount, NegativeTotal
from salesflow.models import SalesOrder
from salesflow.workflow import ledger
from salesflow.workflow.enums import PaymentStatus


def line(quantity, unit_price=None, catalog_item=None):
    return SimpleNamespace(quantity=quantity, unit_price=unit_price, catalog_item=catalog_item, description=None)


def order_with_total(total):
    order = SalesOrder(order_no="SO-TEST", total_amount=Decimal(total), payment_records=[])
    ledger.refresh_payment_summary(order)
    return order


def test_compute_totals():
    totals = ledger.compute_totals(
        [line(2, Decimal("100.00")), line(3, Decimal("33.33"))],
        tax_rate=13, shipping_cost=50, discount=10,
    )
    assert totals.subtotal == Decimal("299.99")
    assert totals.tax_amount == Decimal("39.00")
    assert totals.total == Decimal("378.99")


def test_catalog_line_is_repriced_by_quantity():
    item = SimpleNamespace(code="SPD-12", pricing_model="fixed", base_price=Decimal("2500"), price_tiers=[])
    totals = ledger.compute_totals([line(2, unit_price=Decimal("1"), catalog_item=item)])
    assert totals.subtotal == Decimal("5000.00")


def test_line_without_item_or_price():
    with pytest.raises(InvalidCatalogItem):
        ledger.compute_totals([line(1)])


def test_negative_total_rejected():
    with pytest.raises(NegativeTotal):
        ledger.compute_totals([line(1, Decimal("100"))], discount=150)


@pytest.mark.parametrize("paid,total,expected", [
    (0, 1000, PaymentStatus.PENDING),
    (1, 1000, PaymentStatus.PARTIAL),
    (999.99, 1000, PaymentStatus.PARTIAL),
    (1000, 1000, PaymentStatus.PAID),
    (1200, 1000, PaymentStatus.PAID),
])
def test_derive_payment_status(paid, total, expected):
    assert ledger.derive_payment_status(paid, total) == expected


def test_payments_accumulate():
    order = order_with_total("1000.00")
    assert order.payment_status == PaymentStatus.PENDING.value

    ledger.record_payment(order, 300)
    ledger.record_payment(order, 400)
    assert order.paid_amount == Decimal("700")
    assert order.payment_status == PaymentStatus.PARTIAL.value

    ledger.record_payment(order, 300)
    assert order.paid_amount == Decimal("1000")
    assert order.payment_status == PaymentStatus.PAID.value
    assert [r.amount for r in order.payment_records] == [Decimal("300"), Decimal("400"), Decimal("300")]


def test_payment_order_does_not_change_result():
    outcomes = set()
    for amounts in permutations(["250.50", "249.50", "500"]):
        order = order_with_total("1000.00")
        for amount in amounts:
            ledger.record_payment(order, amount)
        outcomes.add((order.paid_amount, order.payment_status))
    assert outcomes == {(Decimal("1000.00"), PaymentStatus.PAID.value)}


@pytest.mark.parametrize("amount", [0, -10, "-0.01"])
def test_non_positive_payment_rejected(amount):
    order = order_with_total("1000.00")
    with pytest.raises(InvalidPaymentAmount):
        ledger.record_payment(order, amount)
    assert order.payment_records == []
    assert order.paid_amount == Decimal("0")
