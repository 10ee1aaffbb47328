"""
定价解析

- 固定价：直接取 base_price
- 阶梯价：在 min_quantity <= 数量 的档位中取 min_quantity 最大者（阶梯函数）
- 兼容按 price_type 过滤档位：只保留未标类型或类型匹配的档位，若一个都没有则使用全部档位

纯函数，不访问数据库；item / tier 只需具备对应属性（ORM 对象或普通对象均可）。
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from salesflow.core.errors import InvalidCatalogItem, InvalidQuantity, NoApplicableTier
from salesflow.workflow.enums import PricingModel

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _model_of(item) -> str:
    model = getattr(item, "pricing_model", None)
    return model.value if isinstance(model, PricingModel) else model


def _tiers_for(item, price_type: Optional[str] = None) -> List[Any]:
    tiers = list(getattr(item, "price_tiers", None) or [])
    if price_type:
        typed = [t for t in tiers if not getattr(t, "price_type", None) or t.price_type == price_type]
        if typed:
            tiers = typed
    return sorted(tiers, key=lambda t: (t.min_quantity, to_decimal(t.unit_price)))


def check_quantity(quantity) -> None:
    if quantity is None or quantity <= 0:
        raise InvalidQuantity(f"数量必须大于0: {quantity}", {"quantity": quantity})


def select_tier(item, quantity, price_type: Optional[str] = None):
    """返回适用的价格档位；低于最小起订量抛 NoApplicableTier"""
    check_quantity(quantity)
    tiers = _tiers_for(item, price_type)
    if not tiers:
        raise InvalidCatalogItem(
            f"阶梯定价产品缺少价格档位: {getattr(item, 'code', None) or getattr(item, 'id', None)}",
            {"item": getattr(item, "code", None)},
        )
    qualifying = [t for t in tiers if t.min_quantity <= quantity]
    if not qualifying:
        raise NoApplicableTier(
            f"数量 {quantity} 低于最小起订量 {tiers[0].min_quantity}",
            {"quantity": quantity, "min_quantity": tiers[0].min_quantity},
        )
    top = max(t.min_quantity for t in qualifying)
    # 同一数量档重复时取最低价
    return min((t for t in qualifying if t.min_quantity == top), key=lambda t: to_decimal(t.unit_price))


def resolve_price(item, quantity, price_type: Optional[str] = None) -> Decimal:
    """计算单价"""
    check_quantity(quantity)
    model = _model_of(item)

    if model == PricingModel.FIXED.value:
        if getattr(item, "base_price", None) is None:
            raise InvalidCatalogItem(
                f"固定价产品缺少基础价格: {getattr(item, 'code', None)}",
                {"item": getattr(item, "code", None)},
            )
        return to_decimal(item.base_price)

    if model == PricingModel.TIERED.value:
        return to_decimal(select_tier(item, quantity, price_type).unit_price)

    raise InvalidCatalogItem(f"未知定价模式: {model}", {"pricing_model": model})


def discount_rate(original, discounted) -> Decimal:
    """折扣率（百分比，保留2位小数）"""
    original = to_decimal(original)
    if original <= 0:
        return Decimal("0")
    rate = (original - to_decimal(discounted)) / original * 100
    return rate.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def price_info(item, quantity, price_type: Optional[str] = None) -> Dict[str, Any]:
    """
    价格详情：单价、总价、适用档位、下一档位及节省金额

    用于报价页展示“再买 N 台可享受更低单价”。
    """
    unit_price = resolve_price(item, quantity, price_type)
    info: Dict[str, Any] = {
        "pricing_model": _model_of(item),
        "quantity": quantity,
        "unit_price": unit_price,
        "total_price": (unit_price * quantity).quantize(TWO_PLACES),
        "applied_tier": None,
        "next_tier": None,
        "savings": Decimal("0"),
    }
    if info["pricing_model"] != PricingModel.TIERED.value:
        return info

    tiers = _tiers_for(item, price_type)
    applied = select_tier(item, quantity, price_type)
    info["applied_tier"] = {"min_quantity": applied.min_quantity, "unit_price": to_decimal(applied.unit_price)}
    info["available_tiers"] = [
        {"min_quantity": t.min_quantity, "unit_price": to_decimal(t.unit_price)} for t in tiers
    ]

    base = to_decimal(getattr(item, "base_price", None) or tiers[0].unit_price)
    if base > unit_price:
        info["savings"] = ((base - unit_price) * quantity).quantize(TWO_PLACES)
        info["discount_rate"] = discount_rate(base, unit_price)

    higher = [t for t in tiers if t.min_quantity > quantity]
    if higher:
        nxt = higher[0]
        info["next_tier"] = {
            "min_quantity": nxt.min_quantity,
            "unit_price": to_decimal(nxt.unit_price),
            "additional_quantity": nxt.min_quantity - quantity,
        }
    return info


def validate_price_tiers(tiers: Iterable[Any]) -> Dict[str, List[str]]:
    """
    校验价格档位配置

    Returns:
        {"errors": [...], "warnings": [...]}，errors 为空即合法
    """
    tiers = list(tiers or [])
    errors: List[str] = []
    warnings: List[str] = []

    if not tiers:
        errors.append("至少需要一个价格档位")
        return {"errors": errors, "warnings": warnings}

    seen = set()
    for idx, tier in enumerate(tiers, start=1):
        qty = getattr(tier, "min_quantity", None)
        price = getattr(tier, "unit_price", None)
        if qty is None or qty < 1:
            errors.append(f"第{idx}个档位：最小数量必须大于等于1")
        elif qty in seen:
            errors.append(f"第{idx}个档位：最小数量 {qty} 重复")
        else:
            seen.add(qty)
        if price is None or to_decimal(price) < 0:
            errors.append(f"第{idx}个档位：单价不能为负数")

    if not errors:
        ordered = sorted(tiers, key=lambda t: t.min_quantity)
        for prev, cur in zip(ordered, ordered[1:]):
            if to_decimal(cur.unit_price) >= to_decimal(prev.unit_price):
                warnings.append(
                    f"数量 {cur.min_quantity} 档单价 {cur.unit_price} 不低于 {prev.min_quantity} 档单价 {prev.unit_price}"
                )

    return {"errors": errors, "warnings": warnings}
