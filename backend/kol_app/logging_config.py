"""
日志配置

- 控制台：人类可读格式
- 文件：结构化 JSON（app.log / error.log），按大小轮转
"""
import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_log_dir = Path(__file__).resolve().parent.parent / "logs"

# LogRecord 自带字段，其余视为 extra
_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'asctime', 'taskName',
}


class StructuredFormatter(logging.Formatter):
    """结构化 JSON 日志格式化器

    输出格式:
    {
        "timestamp": "2024-01-15T10:30:15.123Z",
        "level": "INFO",
        "logger": "kol_app.services.report_service",
        "message": "Daily stats saved",
        "extra": { ... }
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.levelno <= logging.DEBUG:
            log_data["location"] = f"{record.filename}:{record.lineno}"

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            try:
                json.dumps(value)
                extra_fields[key] = value
            except (TypeError, ValueError):
                extra_fields[key] = str(value)

        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, ensure_ascii=False)


class ReadableFormatter(logging.Formatter):
    """人类可读的日志格式化器（用于控制台）"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        color = self.COLORS.get(record.levelname, '')
        reset = self.RESET if color else ''

        logger_name = record.name
        if logger_name.startswith('kol_app.'):
            logger_name = logger_name[len('kol_app.'):]

        formatted = f"{timestamp} {color}{record.levelname:8}{reset} [{logger_name}] {record.getMessage()}"
        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"
        return formatted


def _rotating_handler(filename: str, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        _log_dir / filename,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter())
    return handler


def configure_logging(log_to_files: bool = True) -> logging.Logger:
    """配置根日志记录器，返回 root logger"""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(ReadableFormatter())
    root_logger.addHandler(console_handler)

    if log_to_files:
        try:
            _log_dir.mkdir(exist_ok=True)
            root_logger.addHandler(_rotating_handler("app.log", logging.DEBUG))
            root_logger.addHandler(_rotating_handler("error.log", logging.WARNING))
        except OSError as e:
            root_logger.warning(f"无法创建文件日志处理器: {e}")

    # 第三方库降噪
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    return root_logger


class AlertLevel:
    """告警级别常量"""
    P0_CRITICAL = "P0"  # 致命：服务宕机
    P1_URGENT = "P1"    # 紧急：功能异常
    P2_WARNING = "P2"   # 警告：需要关注


def log_alert(
    logger: logging.Logger,
    level: str,
    title: str,
    message: str,
    context: Optional[dict] = None,
):
    """记录告警日志

    Example:
        log_alert(
            logger,
            AlertLevel.P1_URGENT,
            "任务扫描失败",
            "定时扫描在处理项目时抛出异常",
            context={"trigger_type": "SCHEDULED"},
        )
    """
    extra = {
        "alert_level": level,
        "alert_title": title,
    }
    if context:
        extra["context"] = context

    if level == AlertLevel.P0_CRITICAL:
        logger.critical(f"[{level}] {title}: {message}", extra=extra)
    elif level == AlertLevel.P1_URGENT:
        logger.error(f"[{level}] {title}: {message}", extra=extra)
    else:
        logger.warning(f"[{level}] {title}: {message}", extra=extra)
