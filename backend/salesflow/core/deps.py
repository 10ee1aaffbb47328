"""依赖注入：数据库会话与操作人身份"""
from typing import AsyncGenerator, Optional

from fastapi import Header, HTTPException

from salesflow.core.logging_config import bind_actor
from salesflow.db.session import SessionLocal
from salesflow.workflow.actor import Actor
from salesflow.workflow.enums import Role


async def get_db() -> AsyncGenerator:
    """
    获取数据库会话依赖
    """
    async with SessionLocal() as session:
        yield session


async def get_actor(
    x_actor_id: int = Header(..., alias="X-Actor-Id"),
    x_actor_name: Optional[str] = Header(None, alias="X-Actor-Name"),
    x_actor_role: str = Header(..., alias="X-Actor-Role"),
) -> Actor:
    """
    从请求头构造操作人（身份认证由上游网关完成，这里只读取结果）
    """
    try:
        role = Role(x_actor_role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"未知角色: {x_actor_role}")
    if role == Role.SYSTEM:
        raise HTTPException(status_code=400, detail="系统身份不能通过接口使用")
    actor = Actor(id=x_actor_id, name=x_actor_name or f"user-{x_actor_id}", role=role)
    bind_actor(actor)
    return actor
