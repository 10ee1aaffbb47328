from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salesflow import __version__
from salesflow.api.api_v1.api import api_router
from salesflow.core.config import settings
from salesflow.core.errors import WorkflowError
from salesflow.core.logging_config import clear_actor, get_logger, setup_logging
from salesflow.db.init_db import ensure_tables_exist
from salesflow.services.scheduler import init_scheduler, shutdown_scheduler

# 初始化日志系统
setup_logging(settings.LOG_LEVEL, settings.LOG_DIR)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时
    logger.info("🚀 应用启动中...")

    await ensure_tables_exist()
    logger.info("📊 数据库表已就绪")

    init_scheduler()
    yield
    # 关闭时
    logger.info("🛑 应用关闭中...")
    shutdown_scheduler()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=__version__,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    description="工业设备销售交付流程：商务项目 → 合同订单 → 生产订单 → 售后工单",
    lifespan=lifespan
)

# CORS配置
if settings.BACKEND_CORS_ORIGINS:
    logger.info(f"配置CORS，允许的源: {settings.BACKEND_CORS_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def reset_log_context(request: Request, call_next):
    # 长连接会复用上下文，每个请求先清掉上一个操作人
    clear_actor()
    return await call_next(request)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    """业务错误统一返回 {code, message, detail}"""
    return JSONResponse(status_code=exc.http_status, content=jsonable_encoder(exc.to_dict()))


logger.info(f"注册API路由，前缀: {settings.API_V1_STR}")
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"message": settings.PROJECT_NAME, "version": __version__}


@app.get("/health")
async def health():
    return {"status": "ok"}
