"""
定时任务调度器服务
使用 APScheduler 定时巡检逾期生产单
"""

import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from salesflow.core.config import settings
from salesflow.core.errors import WorkflowError
from salesflow.core.logging_config import bind_actor

logger = logging.getLogger(__name__)

# 全局调度器实例
scheduler: Optional[AsyncIOScheduler] = None


async def check_overdue_production():
    """执行逾期巡检任务"""
    from salesflow.db.session import SessionLocal
    from salesflow.services.production_orders import mark_overdue
    from salesflow.workflow.actor import SYSTEM_ACTOR

    bind_actor(SYSTEM_ACTOR)
    try:
        async with SessionLocal() as db:
            delayed = await mark_overdue(db)
        if delayed:
            logger.info(f"✅ 逾期巡检完成: {', '.join(delayed)}")
    except WorkflowError as e:
        logger.error(f"❌ 逾期巡检失败: [{e.code}] {e.message}")


def init_scheduler():
    """初始化并启动调度器"""
    global scheduler

    if not settings.OVERDUE_CHECK_ENABLED:
        logger.info("⏰ 逾期巡检已禁用")
        return

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        check_overdue_production,
        trigger=IntervalTrigger(minutes=settings.OVERDUE_CHECK_INTERVAL_MINUTES),
        id="overdue_production_check",
        name="生产单逾期巡检",
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"⏰ 定时任务调度器已启动 - 逾期巡检间隔: {settings.OVERDUE_CHECK_INTERVAL_MINUTES} 分钟")


def shutdown_scheduler():
    """关闭调度器"""
    global scheduler
    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info("⏰ 定时任务调度器已关闭")


def get_scheduler_status() -> dict:
    """获取调度器状态"""
    if not scheduler:
        return {"enabled": settings.OVERDUE_CHECK_ENABLED, "running": False, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None
        })

    return {"enabled": settings.OVERDUE_CHECK_ENABLED, "running": scheduler.running, "jobs": jobs}
