from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime

from salesflow.db.base import Base
from salesflow.workflow.actor import Actor
from salesflow.workflow.enums import Role


class User(Base):
    """系统用户（身份协作方的本地镜像，用于外键和实时查询）"""
    __tablename__ = "sys_user"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    display_name = Column(String(100), nullable=False)
    role = Column(String(50), nullable=False, default=Role.SALES_ENGINEER.value)
    status = Column(Boolean, nullable=False, default=True)  # True: 启用, False: 禁用
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_actor(self) -> Actor:
        return Actor(id=self.id, name=self.display_name, role=Role(self.role))

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"
