"""
定时任务调度器
每天按业务时区（UTC+8）执行一次待办任务扫描
"""
import logging
import threading
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from kol_app.config import settings
from kol_app.database import SessionLocal
from kol_app.logging_config import AlertLevel, log_alert
from kol_app.models.task import TaskRunLog
from kol_app.services.task_service import TRIGGER_SCHEDULED, TaskGenerator

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(timezone=settings.report_tz)

# 定时扫描与手动触发互斥
_scan_lock = threading.Lock()


def build_scan_trigger() -> CronTrigger:
    """每日扫描触发器，时区必须显式指定，否则按服务器本地时区"""
    return CronTrigger(
        hour=settings.TASK_SCAN_HOUR,
        minute=settings.TASK_SCAN_MINUTE,
        timezone=settings.report_tz,
    )


def run_task_scan(trigger_type: str = TRIGGER_SCHEDULED, db: Optional[Session] = None) -> Optional[TaskRunLog]:
    """
    执行一次扫描，上一轮未结束时跳过并返回 None

    未传入会话时使用独立会话，结束后关闭
    """
    if not _scan_lock.acquire(blocking=False):
        logger.warning("【任务扫描跳过】上一轮尚未完成")
        return None
    own_session = db is None
    if own_session:
        db = SessionLocal()
    try:
        return TaskGenerator(db).run_scan(trigger_type)
    except Exception as e:
        log_alert(logger, AlertLevel.P1_URGENT, "任务扫描未能记录日志", str(e),
                  context={"trigger_type": trigger_type})
        raise
    finally:
        if own_session:
            db.close()
        _scan_lock.release()


def daily_task_scan_job():
    """每日任务扫描（定时触发）"""
    logger.info("开始执行每日任务扫描...")
    try:
        run_task_scan(TRIGGER_SCHEDULED)
    except Exception:
        logger.error("每日任务扫描失败", exc_info=True)


def start_scheduler():
    """启动定时任务调度器"""
    if scheduler.running:
        logger.warning("调度器已在运行")
        return

    scheduler.add_job(
        daily_task_scan_job,
        trigger=build_scan_trigger(),
        id='daily_task_scan',
        name='每日待办任务扫描',
        replace_existing=True,
        max_instances=1
    )
    scheduler.start()
    logger.info(
        f"定时任务调度器已启动: 每日任务扫描 {settings.TASK_SCAN_HOUR:02d}:{settings.TASK_SCAN_MINUTE:02d} (UTC+{settings.REPORT_UTC_OFFSET_HOURS})"
    )


def shutdown_scheduler():
    """关闭定时任务调度器"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("定时任务调度器已关闭")
