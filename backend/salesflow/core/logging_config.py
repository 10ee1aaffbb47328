"""
日志配置

控制台彩色输出 + 按日期分割的 app_/error_ 文件。
每条记录带上当前操作人，接口请求由 get_actor 绑定，定时任务绑定为系统身份。
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | [%(actor)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_ACTOR = "-"

_actor_label: ContextVar[str] = ContextVar("log_actor", default=NO_ACTOR)


def bind_actor(actor) -> None:
    """把操作人写入当前上下文，之后本请求/任务内的日志都带上它"""
    label = f"{actor.name}({actor.role.value})"
    if actor.id is not None:
        label += f"#{actor.id}"
    _actor_label.set(label)


def clear_actor() -> None:
    _actor_label.set(NO_ACTOR)


def current_actor_label() -> str:
    return _actor_label.get()


class ActorFilter(logging.Filter):
    """给每条记录补上 actor 字段（第三方库的记录也一样）"""

    def filter(self, record):
        if not hasattr(record, "actor"):
            record.actor = _actor_label.get()
        return True


class ColoredFormatter(logging.Formatter):
    """彩色日志格式（控制台用）"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        # 复制一份，颜色码不能带进文件处理器
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


# 第三方库只保留警告以上
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "apscheduler")


def _file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(log_level: str = "INFO", log_dir: str = "logs"):
    """
    配置根日志器

    Args:
        log_level: DEBUG / INFO / WARNING / ERROR / CRITICAL，无法识别时按 INFO
        log_dir: 日志目录，不存在时自动创建
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    today = datetime.now().strftime("%Y-%m-%d")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, DATE_FORMAT))

    handlers = [
        console_handler,
        _file_handler(log_path / f"app_{today}.log", logging.INFO),
        # 传播失败、存储异常都落在 error 文件里
        _file_handler(log_path / f"error_{today}.log", logging.ERROR),
    ]
    actor_filter = ActorFilter()
    for handler in handlers:
        handler.addFilter(actor_filter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info(f"📋 日志系统初始化完成: level={log_level}, dir={log_path.resolve()}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
