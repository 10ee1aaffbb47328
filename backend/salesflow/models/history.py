"""
历史记录公共字段

每个实体一张历史表，字段一致：
- seq: 实体内的插入顺序，即业务事件的真实顺序
- actor_id: 指向 sys_user 的弱引用（账号被删除后可为空）
- actor_name / actor_role: 写入时的时点副本，仅用于展示

写入后不可修改、不可单独删除，见 db/immutability.py
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import declared_attr

from salesflow.workflow.enums import Visibility


class HistoryEntryMixin:
    # (外键字段名, 所属实体类名)，删除校验使用
    __immutable_owner__ = None

    id = Column(Integer, primary_key=True, index=True)
    seq = Column(Integer, nullable=False, comment="顺序号")
    operation = Column(String(50), nullable=False, comment="操作")

    @declared_attr
    def actor_id(cls):
        return Column(Integer, ForeignKey("sys_user.id", ondelete="SET NULL"), nullable=True)

    actor_name = Column(String(100), comment="操作人（时点副本）")
    actor_role = Column(String(50), comment="操作人角色（时点副本）")
    occurred_at = Column(DateTime, default=datetime.utcnow, nullable=False, comment="操作时间")

    from_status = Column(String(50), comment="原状态")
    to_status = Column(String(50), comment="新状态")
    description = Column(Text, comment="操作描述")

    # 扩展数据，如物流单号、重开原因、收款金额等
    meta_data = Column(JSON, comment="扩展数据")

    visibility = Column(String(10), default=Visibility.INTERNAL.value, comment="可见范围")

    def __repr__(self):
        return f"<{type(self).__name__} #{self.seq}: {self.operation} {self.from_status}->{self.to_status}>"
