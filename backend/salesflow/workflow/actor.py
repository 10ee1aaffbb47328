"""
操作人

每次操作都由身份协作方提供 id / 显示名 / 角色。
权限判断只使用这里的实时角色，历史记录里冗余的姓名角色仅用于展示。
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from salesflow.workflow.enums import Role


@dataclass(frozen=True)
class Actor:
    id: Optional[int]
    name: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def snapshot(self) -> Dict[str, Any]:
        """写入实体时的时点副本"""
        return {"id": self.id, "name": self.name, "role": self.role.value}


SYSTEM_ACTOR = Actor(id=None, name="系统", role=Role.SYSTEM)
