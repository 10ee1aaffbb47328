"""
商务项目模型 - 销售机会从立项到合同签订

锁定规则：
- 转化为合同订单时写入 is_locked / locked_at / locked_reason
- 锁定后 BOM 和报价相关字段不可再改，锁定不会自动解除
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Boolean, UniqueConstraint
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship

from salesflow.db.base import Base
from salesflow.models.history import HistoryEntryMixin
from salesflow.workflow.enums import EntityType, ProjectStatus, PROJECT_WON_STATUSES


class CommercialProject(Base):
    __tablename__ = "commercial_projects"
    __entity_type__ = EntityType.PROJECT
    # 归属关系字段：创建人 / 负责人 / 技术支持 / 商务
    __ownership_fields__ = ("created_by", "owner_id", "technical_support_id", "business_engineer_id")

    id = Column(Integer, primary_key=True, index=True)
    project_no = Column(String(30), unique=True, index=True, nullable=False, comment="项目编号")
    name = Column(String(200), nullable=False, comment="项目名称")
    client_name = Column(String(200), nullable=False, comment="客户名称")
    client_contact = Column(String(200), comment="客户联系人")
    industry = Column(String(100), comment="行业")
    description = Column(Text, comment="项目描述")

    status = Column(String(30), nullable=False, default=ProjectStatus.PENDING_TECH.value, index=True, comment="销售阶段")

    owner_id = Column(Integer, ForeignKey("sys_user.id"), nullable=False, comment="负责人")
    technical_support_id = Column(Integer, ForeignKey("sys_user.id"), comment="技术支持")
    business_engineer_id = Column(Integer, ForeignKey("sys_user.id"), comment="商务工程师")

    # 技术选型清单：当前草稿 + 已提交版本
    # 版本格式：{"version": "v1", "items": [...], "submitted_at": ..., "submitted_by": {...}}
    technical_items = Column(JSON, comment="技术选型清单（草稿）")
    technical_versions = Column(JSON, comment="技术清单历史版本")
    technical_reject_reason = Column(Text, comment="技术清单驳回原因")

    # 报价
    quote_total = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="报价合计")
    quoted_at = Column(DateTime, comment="报价时间")
    lost_reason = Column(Text, comment="失单原因")

    # 锁定
    is_locked = Column(Boolean, nullable=False, default=False, comment="是否锁定")
    locked_at = Column(DateTime, comment="锁定时间")
    locked_reason = Column(String(200), comment="锁定原因")

    # 审计字段
    created_by = Column(Integer, ForeignKey("sys_user.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 关系
    bom_lines = relationship(
        "ProjectBomLine",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectBomLine.line_no",
    )
    history = relationship(
        "ProjectHistory",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectHistory.seq",
    )

    def __repr__(self):
        return f"<CommercialProject {self.project_no}: {self.status}>"

    @property
    def number(self) -> str:
        return self.project_no

    @property
    def is_won(self) -> bool:
        return self.status in [s.value for s in PROJECT_WON_STATUSES]

    @property
    def is_terminal(self) -> bool:
        return self.status == ProjectStatus.LOST.value


class ProjectBomLine(Base):
    """报价 BOM 明细，单价由定价解析得到"""
    __tablename__ = "project_bom_lines"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("commercial_projects.id"), nullable=False, index=True)
    line_no = Column(Integer, nullable=False)

    catalog_item_id = Column(Integer, ForeignKey("catalog_items.id"), comment="产品")
    description = Column(String(200), comment="描述")
    quantity = Column(Integer, nullable=False, comment="数量")
    price_type = Column(String(20), comment="价格类型")
    unit_price = Column(DECIMAL(12, 2), comment="单价")
    total_price = Column(DECIMAL(12, 2), comment="小计")
    notes = Column(Text)

    project = relationship("CommercialProject", back_populates="bom_lines")
    catalog_item = relationship("CatalogItem")


class ProjectHistory(HistoryEntryMixin, Base):
    __tablename__ = "project_history"
    __table_args__ = (UniqueConstraint("project_id", "seq", name="uq_project_history_seq"),)
    __immutable_owner__ = ("project_id", "CommercialProject")

    project_id = Column(Integer, ForeignKey("commercial_projects.id"), nullable=False, index=True)
    project = relationship("CommercialProject", back_populates="history")
