from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from salesflow.core.config import settings


def build_engine(database_uri: str):
    """创建异步引擎，sqlite 同步地址自动切换为 aiosqlite"""
    if database_uri.startswith("sqlite:///"):
        database_uri = "sqlite+aiosqlite:///" + database_uri[len("sqlite:///"):]
    return create_async_engine(
        database_uri,
        echo=settings.SQL_DEBUG,
        future=True,
    )


def build_session_factory(bind):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# 创建异步引擎
engine = build_engine(settings.DATABASE_URI)

# 创建异步会话
SessionLocal = build_session_factory(engine)
