"""
合同订单模型

- 由已赢单项目转化而来，与项目一对一（project_id 唯一）
- project_snapshot 为创建时的项目快照，之后不再变化
- 收款记录、发货记录只追加
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Boolean, UniqueConstraint
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship

from salesflow.db.base import Base
from salesflow.models.history import HistoryEntryMixin
from salesflow.workflow.enums import (
    ApprovalStatus, EntityType, LineStatus, PaymentStatus, SalesOrderStatus
)


class SalesOrder(Base):
    __tablename__ = "sales_orders"
    __entity_type__ = EntityType.SALES_ORDER
    __ownership_fields__ = ("created_by", "assigned_to", "logistics_id", "planner_id")

    id = Column(Integer, primary_key=True, index=True)
    order_no = Column(String(30), unique=True, index=True, nullable=False, comment="订单号")
    project_id = Column(Integer, ForeignKey("commercial_projects.id"), unique=True, nullable=False, comment="来源项目")
    project_snapshot = Column(JSON, nullable=False, comment="项目快照")

    status = Column(String(30), nullable=False, default=SalesOrderStatus.PENDING.value, index=True, comment="状态")

    # 财务
    subtotal = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="合计")
    tax_rate = Column(DECIMAL(5, 2), default=Decimal("0.00"), comment="税率(%)")
    tax_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="税额")
    shipping_cost = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="运费")
    discount = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="折扣")
    total_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="总额")

    # 收款（paid_amount / payment_status 由账务规则推导）
    payment_terms = Column(String(200), comment="付款条件")
    paid_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="已收金额")
    payment_status = Column(String(20), default=PaymentStatus.PENDING.value, comment="付款状态")
    final_payment_confirmed = Column(Boolean, nullable=False, default=False, comment="尾款已确认")
    final_payment_confirmed_at = Column(DateTime)
    final_payment_confirmed_by = Column(Integer, ForeignKey("sys_user.id"))

    # 审批
    approval_status = Column(String(20), default=ApprovalStatus.PENDING.value, comment="审批状态")
    approved_by = Column(Integer, ForeignKey("sys_user.id"), comment="审批人")
    approved_at = Column(DateTime, comment="审批时间")
    approval_notes = Column(Text, comment="审批意见")

    # 交付
    delivery_address = Column(Text, comment="交货地址")
    delivered_at = Column(DateTime, comment="签收时间")
    completed_at = Column(DateTime, comment="完成时间")
    cancelled_at = Column(DateTime, comment="取消时间")
    cancel_reason = Column(Text, comment="取消原因")
    notes = Column(Text, comment="备注")

    # 审计字段
    created_by = Column(Integer, ForeignKey("sys_user.id"), nullable=False)
    assigned_to = Column(Integer, ForeignKey("sys_user.id"), comment="负责销售")
    logistics_id = Column(Integer, ForeignKey("sys_user.id"), comment="物流专员")
    planner_id = Column(Integer, ForeignKey("sys_user.id"), comment="生产计划员")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 关系
    project = relationship("CommercialProject", foreign_keys=[project_id])
    lines = relationship(
        "SalesOrderLine", back_populates="order", cascade="all, delete-orphan", order_by="SalesOrderLine.line_no"
    )
    payment_records = relationship(
        "PaymentRecord", back_populates="order", cascade="all, delete-orphan", order_by="PaymentRecord.id"
    )
    shipments = relationship(
        "Shipment", back_populates="order", cascade="all, delete-orphan", order_by="Shipment.seq"
    )
    history = relationship(
        "SalesOrderHistory", back_populates="order", cascade="all, delete-orphan", order_by="SalesOrderHistory.seq"
    )

    def __repr__(self):
        return f"<SalesOrder {self.order_no}: {self.status}>"

    @property
    def number(self) -> str:
        return self.order_no

    @property
    def status_display(self) -> str:
        status_map = {
            "Pending": "待确认",
            "Confirmed": "已确认",
            "In Production": "生产中",
            "QC Passed": "质检通过",
            "Ready to Ship": "待发货",
            "Shipped": "已发货",
            "Delivered": "已签收",
            "Completed": "已完成",
            "Cancelled": "已取消",
        }
        return status_map.get(self.status, self.status)

    @property
    def payment_status_display(self) -> str:
        return {"Pending": "未付款", "Partial": "部分付款", "Paid": "已付清"}.get(self.payment_status, self.payment_status)

    @property
    def unpaid_amount(self) -> Decimal:
        return max(Decimal(str(self.total_amount or 0)) - Decimal(str(self.paid_amount or 0)), Decimal("0"))


class SalesOrderLine(Base):
    """订单明细（单价在转化时锁定）"""
    __tablename__ = "sales_order_lines"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("sales_orders.id"), nullable=False, index=True)
    line_no = Column(Integer, nullable=False)

    catalog_item_id = Column(Integer, ForeignKey("catalog_items.id"), comment="产品")
    item_code = Column(String(50), comment="产品编码")
    description = Column(String(200), comment="描述")
    quantity = Column(Integer, nullable=False, comment="数量")
    unit_price = Column(DECIMAL(12, 2), nullable=False, comment="单价")
    total_price = Column(DECIMAL(12, 2), nullable=False, comment="小计")

    # Pending → In Production → Completed → Shipped
    production_status = Column(String(20), default=LineStatus.PENDING.value, comment="履约状态")

    order = relationship("SalesOrder", back_populates="lines")


class PaymentRecord(Base):
    """收款记录（只追加）"""
    __tablename__ = "payment_records"
    __immutable_owner__ = ("order_id", "SalesOrder")

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("sales_orders.id"), nullable=False, index=True)
    amount = Column(DECIMAL(12, 2), nullable=False, comment="金额")
    method = Column(String(50), comment="付款方式")
    reference = Column(String(100), comment="凭证号")
    paid_at = Column(DateTime, default=datetime.utcnow, comment="付款日期")
    notes = Column(Text)
    recorded_by = Column(Integer, ForeignKey("sys_user.id", ondelete="SET NULL"))
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("SalesOrder", back_populates="payment_records")

    def __repr__(self):
        return f"<PaymentRecord {self.order_id}: ¥{self.amount}>"


class Shipment(Base):
    """发货记录，编号为 订单号-S01、-S02 ..."""
    __tablename__ = "shipments"
    __table_args__ = (UniqueConstraint("order_id", "seq", name="uq_shipment_seq"),)
    __immutable_owner__ = ("order_id", "SalesOrder")

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("sales_orders.id"), nullable=False, index=True)
    seq = Column(Integer, nullable=False, comment="批次")
    shipment_no = Column(String(40), unique=True, nullable=False, comment="发货单号")
    tracking_number = Column(String(100), nullable=False, comment="物流单号")
    carrier = Column(String(100), nullable=False, comment="承运商")
    shipped_at = Column(DateTime, default=datetime.utcnow, comment="发货时间")
    items = Column(JSON, comment="发货明细")
    notes = Column(Text)
    created_by = Column(Integer, ForeignKey("sys_user.id", ondelete="SET NULL"))

    order = relationship("SalesOrder", back_populates="shipments")


class SalesOrderHistory(HistoryEntryMixin, Base):
    __tablename__ = "sales_order_history"
    __table_args__ = (UniqueConstraint("order_id", "seq", name="uq_sales_order_history_seq"),)
    __immutable_owner__ = ("order_id", "SalesOrder")

    order_id = Column(Integer, ForeignKey("sales_orders.id"), nullable=False, index=True)
    order = relationship("SalesOrder", back_populates="history")
