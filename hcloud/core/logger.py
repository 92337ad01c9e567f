"""日志模块：基于 ``logging.config.dictConfig`` 的统一日志输出。

控制台默认彩色文本，``LOG_JSON=true`` 时改为每行一个 JSON 对象；
文件日志按天切分，保留两周。每条记录都带上当前请求的 ``request_id``。
"""

import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from .config import Settings, get_settings

LOGGER_NAME = "hcloud"
TEXT_FORMAT = "%(asctime)s [%(request_id)s] %(name)s %(levelname)s %(message)s"
LOG_BACKUP_DAYS = 14

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()


class RequestIdFilter(logging.Filter):
    """把上下文中的请求 ID 写入记录；请求之外的日志记为 ``-``。"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id_ctx.get() or "-"
        return True


class LocalTimeFormatter(logging.Formatter):
    """按配置时区渲染时间戳，未指定 datefmt 时输出毫秒精度。"""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        stamp = datetime.fromtimestamp(record.created, get_settings().timezone_info)
        if datefmt:
            return stamp.strftime(datefmt)
        return stamp.isoformat(sep=" ", timespec="milliseconds")


class ColorFormatter(LocalTimeFormatter):
    """仅给级别名上色，消息正文保持原样，方便复制。"""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;41m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str = TEXT_FORMAT, datefmt: Optional[str] = None, use_colors: Optional[bool] = None):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colors = sys.stderr.isatty() if use_colors is None else use_colors

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        if not color:
            return super().format(record)
        original = record.levelname
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JsonFormatter(LocalTimeFormatter):
    """每条日志输出为单行 JSON，便于采集。"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", None),
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def build_logging_config(settings: Settings) -> Dict[str, Any]:
    """生成 dictConfig 配置；控制台与文件共用同一个请求 ID 过滤器。"""
    console_formatter = "json" if settings.log_json else "color"
    file_formatter = "json" if settings.log_json else "text"
    handlers = ["console", "file"]
    owned_logger = {"handlers": handlers, "level": settings.log_level, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {
            "color": {"()": ColorFormatter},
            "text": {"()": LocalTimeFormatter, "fmt": TEXT_FORMAT},
            "json": {"()": JsonFormatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.log_level,
                "formatter": console_formatter,
                "filters": ["request_id"],
            },
            "file": {
                "class": "logging.handlers.TimedRotatingFileHandler",
                "level": settings.log_level,
                "formatter": file_formatter,
                "filename": str(settings.log_file_path),
                "when": "midnight",
                "backupCount": LOG_BACKUP_DAYS,
                "encoding": "utf-8",
                "delay": True,
                "filters": ["request_id"],
            },
        },
        "loggers": {
            LOGGER_NAME: dict(owned_logger),
            "uvicorn": dict(owned_logger),
            "uvicorn.access": dict(owned_logger),
        },
        "root": {"handlers": handlers, "level": settings.log_level},
    }


def setup_logging() -> None:
    """创建日志目录并应用配置，应用启动时调用一次。"""
    settings = get_settings()
    settings.log_directory.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(settings))


logger = logging.getLogger(LOGGER_NAME)
