"""
账务规则

核心逻辑：
- 合计 = Σ(单价 × 数量)，单价经定价解析得到
- 税额 = 合计 × 税率/100
- 总额 = 合计 + 税额 + 运费 − 折扣，不允许为负
- 已付金额 = 收款记录之和，付款状态只由 derive_payment_status 推导

paid_amount / payment_status 只能经由本模块写入。
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from salesflow.core.errors import InvalidCatalogItem, InvalidPaymentAmount, NegativeTotal
from salesflow.workflow.enums import PaymentStatus
from salesflow.workflow.pricing import TWO_PLACES, resolve_price, to_decimal, check_quantity


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def line_unit_price(line) -> Decimal:
    """明细单价：关联了产品则按数量解析，否则使用手工单价"""
    item = getattr(line, "catalog_item", None)
    if item is not None:
        return resolve_price(item, line.quantity, getattr(line, "price_type", None))
    check_quantity(line.quantity)
    if getattr(line, "unit_price", None) is None:
        raise InvalidCatalogItem("明细既未关联产品也未填写单价", {"line": getattr(line, "description", None)})
    return to_decimal(line.unit_price)


def compute_totals(lines: Iterable, tax_rate=0, shipping_cost=0, discount=0) -> Totals:
    subtotal = Decimal("0")
    for line in lines:
        subtotal += line_unit_price(line) * to_decimal(line.quantity)
    subtotal = subtotal.quantize(TWO_PLACES)
    tax_amount = (subtotal * to_decimal(tax_rate) / 100).quantize(TWO_PLACES)
    total = subtotal + tax_amount + to_decimal(shipping_cost) - to_decimal(discount)
    if total < 0:
        raise NegativeTotal(
            f"订单总额不能为负: {total}",
            {"subtotal": str(subtotal), "tax_amount": str(tax_amount), "total": str(total)},
        )
    return Totals(subtotal=subtotal, tax_amount=tax_amount, total=total.quantize(TWO_PLACES))


def apply_totals(order, totals: Totals) -> None:
    order.subtotal = totals.subtotal
    order.tax_amount = totals.tax_amount
    order.total_amount = totals.total


def derive_payment_status(paid_amount, total) -> PaymentStatus:
    paid_amount = to_decimal(paid_amount)
    if paid_amount <= 0:
        return PaymentStatus.PENDING
    if paid_amount < to_decimal(total):
        return PaymentStatus.PARTIAL
    return PaymentStatus.PAID


def refresh_payment_summary(order) -> None:
    """按收款记录重算已付金额和付款状态"""
    paid = sum((to_decimal(r.amount) for r in order.payment_records), Decimal("0"))
    order.paid_amount = paid
    order.payment_status = derive_payment_status(paid, order.total_amount).value


def record_payment(
    order,
    amount,
    method: Optional[str] = None,
    reference: Optional[str] = None,
    paid_at: Optional[datetime] = None,
    notes: Optional[str] = None,
    recorded_by: Optional[int] = None,
):
    """追加一条收款记录并重算付款汇总"""
    from salesflow.models.sales_order import PaymentRecord

    amount = to_decimal(amount)
    if amount <= 0:
        raise InvalidPaymentAmount(f"收款金额必须大于0: {amount}", {"amount": str(amount)})

    record = PaymentRecord(
        amount=amount,
        method=method,
        reference=reference,
        paid_at=paid_at or datetime.utcnow(),
        notes=notes,
        recorded_by=recorded_by,
    )
    order.payment_records.append(record)
    refresh_payment_summary(order)
    return record
