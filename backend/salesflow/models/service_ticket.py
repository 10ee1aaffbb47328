"""
售后工单模型

created_by / assigned_to / closed_by 各保存 id（实时关联）+ 姓名角色（时点副本）。
final_report 格式：
    {"content": ..., "root_cause": ..., "actions_taken": ...,
     "generated_by": {"id", "name", "role"}, "generated_at": ISO时间}
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship

from salesflow.db.base import Base
from salesflow.models.history import HistoryEntryMixin
from salesflow.workflow.enums import EntityType, TicketStatus


class ServiceTicket(Base):
    __tablename__ = "service_tickets"
    __entity_type__ = EntityType.SERVICE_TICKET
    __ownership_fields__ = ("created_by_id", "assigned_to_id")

    id = Column(Integer, primary_key=True, index=True)
    ticket_no = Column(String(30), unique=True, index=True, nullable=False, comment="工单号")
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id"), comment="关联订单")

    ticket_type = Column(String(30), default="维修", comment="工单类型")
    priority = Column(String(20), default="Normal", comment="优先级")
    title = Column(String(200), nullable=False, comment="标题")
    description = Column(Text, comment="问题描述")
    client_name = Column(String(200), comment="客户名称")

    status = Column(String(30), nullable=False, default=TicketStatus.PENDING_ACCEPTANCE.value, index=True, comment="状态")

    created_by_id = Column(Integer, ForeignKey("sys_user.id"), nullable=False)
    created_by_name = Column(String(100))
    created_by_role = Column(String(50))

    assigned_to_id = Column(Integer, ForeignKey("sys_user.id"))
    assigned_to_name = Column(String(100))
    assigned_to_role = Column(String(50))
    accepted_at = Column(DateTime, comment="受理时间")

    solution = Column(Text, comment="处理方案")
    final_report = Column(JSON, comment="最终报告")
    resolved_at = Column(DateTime, comment="解决时间")

    closed_by_id = Column(Integer, ForeignKey("sys_user.id"))
    closed_by_name = Column(String(100))
    closed_by_role = Column(String(50))
    closed_at = Column(DateTime)
    close_reason = Column(String(20), comment="关闭原因")
    customer_feedback = Column(JSON, comment="客户反馈")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sales_order = relationship("SalesOrder", foreign_keys=[sales_order_id])
    history = relationship(
        "TicketHistory", back_populates="ticket", cascade="all, delete-orphan", order_by="TicketHistory.seq"
    )

    def __repr__(self):
        return f"<ServiceTicket {self.ticket_no}: {self.status}>"

    @property
    def number(self) -> str:
        return self.ticket_no

    @property
    def created_by(self):
        return {"id": self.created_by_id, "name": self.created_by_name, "role": self.created_by_role}

    @property
    def assigned_to(self):
        if self.assigned_to_id is None:
            return None
        return {"id": self.assigned_to_id, "name": self.assigned_to_name, "role": self.assigned_to_role}

    @property
    def closed_by(self):
        if self.closed_by_id is None:
            return None
        return {"id": self.closed_by_id, "name": self.closed_by_name, "role": self.closed_by_role}

    @property
    def has_report(self) -> bool:
        content = (self.final_report or {}).get("content")
        return bool(content and str(content).strip())


class TicketHistory(HistoryEntryMixin, Base):
    __tablename__ = "ticket_history"
    __table_args__ = (UniqueConstraint("ticket_id", "seq", name="uq_ticket_history_seq"),)
    __immutable_owner__ = ("ticket_id", "ServiceTicket")

    ticket_id = Column(Integer, ForeignKey("service_tickets.id"), nullable=False, index=True)
    ticket = relationship("ServiceTicket", back_populates="history")
