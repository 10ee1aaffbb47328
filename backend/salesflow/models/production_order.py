"""
生产订单模型

- 由合同订单下达，与合同订单一对一（sales_order_id 唯一）
- 状态一部分由自身生产事件推动，一部分由合同订单的发货事件同步
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship

from salesflow.db.base import Base
from salesflow.models.history import HistoryEntryMixin
from salesflow.workflow.enums import EntityType, MaterialReadiness, ProductionStatus


class ProductionOrder(Base):
    __tablename__ = "production_orders"
    __entity_type__ = EntityType.PRODUCTION_ORDER
    __ownership_fields__ = ("created_by", "supervisor_id", "inspector_id")

    id = Column(Integer, primary_key=True, index=True)
    production_no = Column(String(30), unique=True, index=True, nullable=False, comment="生产单号")
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id"), unique=True, nullable=False, comment="合同订单")
    order_snapshot = Column(JSON, comment="订单快照")

    status = Column(String(30), nullable=False, default=ProductionStatus.PENDING.value, index=True, comment="状态")
    priority = Column(String(20), default="Normal", comment="优先级")

    # 计划/实际日期
    planned_start = Column(DateTime, comment="计划开始")
    planned_end = Column(DateTime, comment="计划完成")
    actual_start = Column(DateTime, comment="实际开始")
    actual_end = Column(DateTime, comment="实际完成")

    progress = Column(Integer, nullable=False, default=0, comment="进度(%)")
    material_readiness_status = Column(
        String(20), default=MaterialReadiness.PENDING_ANALYSIS.value, comment="齐套状态"
    )

    supervisor_id = Column(Integer, ForeignKey("sys_user.id"), comment="生产主管")
    inspector_id = Column(Integer, ForeignKey("sys_user.id"), comment="质检员")

    delay_reason = Column(Text, comment="延期原因")
    pause_reason = Column(Text, comment="暂停原因")
    cancel_reason = Column(Text, comment="取消原因")
    qc_notes = Column(Text, comment="质检意见")
    notes = Column(Text, comment="备注")

    # 审计字段
    created_by = Column(Integer, ForeignKey("sys_user.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 关系
    sales_order = relationship("SalesOrder", foreign_keys=[sales_order_id])
    items = relationship(
        "ProductionItem", back_populates="production_order", cascade="all, delete-orphan", order_by="ProductionItem.id"
    )
    history = relationship(
        "ProductionLog", back_populates="production_order", cascade="all, delete-orphan", order_by="ProductionLog.seq"
    )

    def __repr__(self):
        return f"<ProductionOrder {self.production_no}: {self.status}>"

    @property
    def number(self) -> str:
        return self.production_no

    @property
    def status_display(self) -> str:
        status_map = {
            "Pending": "待排产",
            "Scheduled": "已排产",
            "In Production": "生产中",
            "Paused": "已暂停",
            "Awaiting QC": "待质检",
            "QC Passed": "质检通过",
            "Ready to Ship": "待发货",
            "Shipped": "已发货",
            "Completed": "已完成",
            "Delayed": "已延期",
            "Cancelled": "已取消",
        }
        return status_map.get(self.status, self.status)


class ProductionItem(Base):
    """生产明细：订购/已生产/合格数量"""
    __tablename__ = "production_items"

    id = Column(Integer, primary_key=True, index=True)
    production_order_id = Column(Integer, ForeignKey("production_orders.id"), nullable=False, index=True)
    sales_order_line_id = Column(Integer, ForeignKey("sales_order_lines.id"), comment="订单明细")
    item_code = Column(String(50))
    description = Column(String(200))
    ordered_quantity = Column(Integer, nullable=False, default=0)
    produced_quantity = Column(Integer, nullable=False, default=0)
    qualified_quantity = Column(Integer, nullable=False, default=0)

    production_order = relationship("ProductionOrder", back_populates="items")


class ProductionLog(HistoryEntryMixin, Base):
    __tablename__ = "production_logs"
    __table_args__ = (UniqueConstraint("production_order_id", "seq", name="uq_production_log_seq"),)
    __immutable_owner__ = ("production_order_id", "ProductionOrder")

    production_order_id = Column(Integer, ForeignKey("production_orders.id"), nullable=False, index=True)
    production_order = relationship("ProductionOrder", back_populates="history")
