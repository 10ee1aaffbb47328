"""
产品目录（定价输入，只读）
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship

from salesflow.db.base import Base
from salesflow.workflow.enums import PricingModel


class CatalogItem(Base):
    __tablename__ = "catalog_items"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False, comment="产品编码/型号")
    name = Column(String(200), nullable=False, comment="产品名称")
    specification = Column(Text, comment="规格描述")

    # fixed: 固定价  tiered: 阶梯价
    pricing_model = Column(String(20), nullable=False, default=PricingModel.FIXED.value, comment="定价模式")
    base_price = Column(DECIMAL(12, 2), comment="基础价格")

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    price_tiers = relationship(
        "PriceTier",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="PriceTier.min_quantity",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<CatalogItem {self.code} ({self.pricing_model})>"

    @property
    def pricing_model_display(self) -> str:
        return {"fixed": "固定价格", "tiered": "阶梯价格"}.get(self.pricing_model, self.pricing_model)


class PriceTier(Base):
    """价格档位：数量达到 min_quantity 后适用 unit_price"""
    __tablename__ = "price_tiers"
    __table_args__ = (
        UniqueConstraint("item_id", "price_type", "min_quantity", name="uq_price_tier_quantity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("catalog_items.id"), nullable=False, index=True)
    min_quantity = Column(Integer, nullable=False, comment="最小数量")
    unit_price = Column(DECIMAL(12, 2), nullable=False, comment="单价")
    price_type = Column(String(20), comment="价格类型（兼容旧数据）")
    notes = Column(String(200))

    item = relationship("CatalogItem", back_populates="price_tiers")

    def __repr__(self):
        return f"<PriceTier >={self.min_quantity}: {self.unit_price}>"
