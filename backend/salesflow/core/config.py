from typing import List, Union
import logging

from pydantic import AnyHttpUrl, Field, validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    PROJECT_NAME: str = "工业设备销售交付流程引擎"
    API_V1_STR: str = "/api/v1"

    # CORS配置
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3001"
    ]

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # 数据库配置
    DATABASE_URI: str = "sqlite+aiosqlite:///./salesflow.db"
    SQL_DEBUG: bool = False

    # 日志配置
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # 生产计划：默认计划周期（天）
    PRODUCTION_LEAD_DAYS: int = 30
    # 下生产单前需到账的订单金额比例（0 表示不校验预付款）
    PRODUCTION_MIN_DEPOSIT_RATIO: float = Field(default=0.0, ge=0, le=1)

    # 项目转合同订单后写入的锁定原因
    PROJECT_LOCK_REASON: str = "已转化为合同订单"

    # 生产逾期巡检
    OVERDUE_CHECK_ENABLED: bool = True
    OVERDUE_CHECK_INTERVAL_MINUTES: int = 60

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
logger.info(f"加载配置: API_V1_STR={settings.API_V1_STR}, DATABASE_URI={settings.DATABASE_URI}")
