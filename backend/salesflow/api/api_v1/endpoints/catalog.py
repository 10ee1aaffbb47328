"""产品报价API（只读）"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.deps import get_db
from salesflow.services.loaders import load_catalog_item
from salesflow.workflow.pricing import price_info, validate_price_tiers

router = APIRouter()


@router.get("/{item_id}/price")
async def get_price(
    *,
    db: AsyncSession = Depends(get_db),
    item_id: int,
    quantity: int = Query(..., description="数量"),
    price_type: Optional[str] = Query(None)) -> Any:
    """按数量计算单价，并提示下一档位"""
    item = await load_catalog_item(db, item_id)
    return {
        "item_id": item.id,
        "code": item.code,
        "pricing_model": item.pricing_model_display,
        **price_info(item, quantity, price_type),
    }


@router.get("/{item_id}/tier-check")
async def check_tiers(
    *,
    db: AsyncSession = Depends(get_db),
    item_id: int) -> Any:
    """校验价格档位配置"""
    item = await load_catalog_item(db, item_id)
    result = validate_price_tiers(item.price_tiers)
    return {"item_id": item.id, "valid": not result["errors"], **result}
