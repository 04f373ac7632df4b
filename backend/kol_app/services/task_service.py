"""
待办任务服务

- TaskService：按 (关联项目, 任务类型) 幂等地创建 / 重置 / 完成任务
- TaskGenerator：扫描进行中的项目和达人库，按规则生成或关闭任务，每次运行写一条扫描日志
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from kol_app.logging_config import AlertLevel, log_alert
from kol_app.models.collaboration import Collaboration, CollaborationStatus
from kol_app.models.project import Project, ProjectStatus
from kol_app.models.talent import Talent
from kol_app.models.task import SYSTEM_PROJECT_ID, Task, TaskRunLog
from kol_app.models.work import Work
from kol_app.services.metrics_engine import report_today
from kol_app.utils.data_processor import to_date, utc_now

logger = logging.getLogger(__name__)

TASK_PENDING = "pending"
TASK_COMPLETED = "COMPLETED"

TRIGGER_MANUAL = "MANUAL"
TRIGGER_SCHEDULED = "SCHEDULED"

SCANNED_PROJECT_STATUSES = (ProjectStatus.IN_PROGRESS.value, ProjectStatus.PENDING_SETTLEMENT.value)
FINALIZE_SKIP_STATUSES = (
    ProjectStatus.PENDING_SETTLEMENT.value,
    ProjectStatus.PAID.value,
    ProjectStatus.FINALIZED.value,
)

PERFORMANCE_STALE_DAYS = 7
PRICE_CHECK_DAY_OF_MONTH = 2


class TaskService:
    """任务服务类"""

    def __init__(self, db: Session):
        self.db = db

    def list_tasks(self, status: Optional[str] = None, project_id: Optional[str] = None) -> List[Task]:
        query = self.db.query(Task)
        if status:
            query = query.filter(Task.status == status)
        if project_id:
            query = query.filter(Task.related_project_id == project_id)
        return query.order_by(Task.updated_at.desc(), Task.id.desc()).all()

    def list_logs(self, limit: int = 10) -> List[TaskRunLog]:
        return self.db.query(TaskRunLog).order_by(TaskRunLog.timestamp.desc(), TaskRunLog.id.desc()).limit(limit).all()

    def create_or_update_task(
        self,
        related_project_id: str,
        task_type: str,
        title: str,
        description: str,
        due_date: Optional[datetime] = None,
    ) -> Task:
        """
        同一项目同一类型只保留一条任务，每次命中规则都重置为 pending

        新建或由已完成重新打开的任务会记录一条提醒日志
        """
        now = utc_now()
        task = self.db.query(Task).filter(
            Task.related_project_id == related_project_id,
            Task.type == task_type,
        ).first()

        is_new = task is None or task.status != TASK_PENDING
        if task is None:
            task = Task(related_project_id=related_project_id, type=task_type, created_at=now)
            self.db.add(task)

        task.title = title
        task.description = description
        task.status = TASK_PENDING
        task.updated_at = now
        if due_date is not None:
            task.due_date = due_date
        self.db.flush()

        if is_new:
            self._announce(task)
        return task

    def complete_task(self, related_project_id: str, task_type: str) -> bool:
        """关闭未完成的任务，返回是否有任务被关闭"""
        task = self.db.query(Task).filter(
            Task.related_project_id == related_project_id,
            Task.type == task_type,
            Task.status != TASK_COMPLETED,
        ).first()
        if task is None:
            return False
        task.status = TASK_COMPLETED
        task.updated_at = utc_now()
        self.db.flush()
        return True

    def _announce(self, task: Task):
        project_name = "系统全局任务"
        if task.related_project_id != SYSTEM_PROJECT_ID:
            project = self.db.query(Project).filter(Project.id == task.related_project_id).first()
            if project is not None:
                project_name = project.name
        logger.info(f"[任务提醒] {project_name} - {task.title}: {task.description}")


@dataclass
class ProjectRule:
    type: str
    condition: Callable[[Project, List[Collaboration]], Optional[dict]]
    payload: Callable[[Project, dict], dict]


def _latest_publish_date(collaborations: List[Collaboration]) -> Optional[date]:
    dates = [to_date(c.publish_date) for c in collaborations if c.publish_date]
    dates = [d for d in dates if d is not None]
    return max(dates) if dates else None


def _as_datetime(d: date) -> datetime:
    return datetime(d.year, d.month, d.day)


class TaskGenerator:
    """任务扫描器"""

    def __init__(self, db: Session, today: Optional[date] = None):
        self.db = db
        self.today = today or report_today()
        self.tasks = TaskService(db)
        self._works: Dict[str, Work] = {}

    def _project_rules(self) -> List[ProjectRule]:
        return [
            ProjectRule("PROJECT_PENDING_PUBLISH", self._pending_publish, lambda p, d: {
                "title": "达人待发布",
                "description": f"项目 [{p.name}] 有 {d['count']} 位达人今日或之前应发布但未更新状态。",
            }),
            ProjectRule("PROJECT_DATA_OVERDUE_T7", self._data_overdue(7, "t7_stats_updated_at"), lambda p, d: {
                "title": "[告警] T+7 数据已逾期",
                "description": f"项目 [{p.name}] 的 T+7 数据已逾期 {d['overdue_days']} 天！",
                "due_date": d["due_date"],
            }),
            ProjectRule("PROJECT_DATA_OVERDUE_T21", self._data_overdue(21, "t21_stats_updated_at"), lambda p, d: {
                "title": "[告警] T+21 数据已逾期",
                "description": f"项目 [{p.name}] 的 T+21 数据已逾期 {d['overdue_days']} 天！",
                "due_date": d["due_date"],
            }),
            ProjectRule("PROJECT_FINALIZE_REMINDER", self._finalize_reminder, lambda p, d: {
                "title": "项目待定案",
                "description": (
                    f"项目 [{p.name}] 的T+21数据周期已结束，请确认最终数据，发送结算邮件，"
                    f"并将项目状态更新为‘待结算’。"
                ),
            }),
        ]

    # ---- 项目级规则 ----

    def _pending_publish(self, project: Project, collaborations: List[Collaboration]) -> Optional[dict]:
        pending = [
            c for c in collaborations
            if c.status == CollaborationStatus.CONFIRMED.value
            and c.planned_release_date is not None
            and to_date(c.planned_release_date) <= self.today
        ]
        return {"count": len(pending)} if pending else None

    def _data_overdue(self, days: int, milestone_attr: str):
        def condition(project: Project, collaborations: List[Collaboration]) -> Optional[dict]:
            # 还有达人未发布时不催数据
            if any(c.status == CollaborationStatus.CONFIRMED.value and not c.publish_date for c in collaborations):
                return None
            latest = _latest_publish_date(collaborations)
            if latest is None:
                return None
            due = latest + timedelta(days=days)
            if self.today <= due:
                return None
            missing = any(
                c.publish_date and getattr(self._works.get(c.id), milestone_attr, None) is None
                for c in collaborations
            )
            if not missing:
                return None
            return {"due_date": _as_datetime(due), "overdue_days": (self.today - due).days}
        return condition

    def _finalize_reminder(self, project: Project, collaborations: List[Collaboration]) -> Optional[dict]:
        if project.status in FINALIZE_SKIP_STATUSES:
            return None
        latest = _latest_publish_date(collaborations)
        if latest is None:
            return None
        return {} if self.today > latest + timedelta(days=21) else None

    # ---- 扫描 ----

    def run_scan(self, trigger_type: str = TRIGGER_SCHEDULED) -> TaskRunLog:
        """执行一次完整扫描，异常不向外抛出，结果记录在扫描日志中"""
        run_log = TaskRunLog(
            timestamp=utc_now(),
            trigger_type=trigger_type,
            status="PENDING",
            summary="任务扫描开始...",
            created_tasks=0,
            completed_tasks=0,
            details=[],
        )
        details: List[str] = []
        try:
            project_count, talent_count = self._scan(run_log, details)
            run_log.status = "SUCCESS"
            run_log.summary = (
                f"处理了 {project_count} 个项目及 {talent_count} 位达人，"
                f"创建/更新 {run_log.created_tasks}，完成 {run_log.completed_tasks}。"
            )
        except Exception as e:
            self.db.rollback()
            log_alert(
                logger,
                AlertLevel.P1_URGENT,
                "任务扫描失败",
                str(e),
                context={"trigger_type": trigger_type},
            )
            logger.error("任务扫描异常", exc_info=True)
            run_log.status = "FAILURE"
            run_log.summary = "任务扫描期间发生严重错误。"
            run_log.error = {"type": type(e).__name__, "message": str(e)}

        run_log.details = details
        self.db.add(run_log)
        self.db.commit()
        logger.info(f"任务扫描结束: {run_log.status} {run_log.summary}")
        return run_log

    def _scan(self, run_log: TaskRunLog, details: List[str]):
        projects = self.db.query(Project).filter(Project.status.in_(SCANNED_PROJECT_STATUSES)).all()
        project_ids = [p.id for p in projects]

        by_project: Dict[str, List[Collaboration]] = {pid: [] for pid in project_ids}
        if project_ids:
            for c in self.db.query(Collaboration).filter(Collaboration.project_id.in_(project_ids)).all():
                by_project[c.project_id].append(c)
            self._works = {
                w.collaboration_id: w
                for w in self.db.query(Work).filter(Work.project_id.in_(project_ids)).all()
            }

        rules = self._project_rules()
        for project in projects:
            collaborations = by_project.get(project.id, [])
            for rule in rules:
                result = rule.condition(project, collaborations)
                if result is not None:
                    payload = rule.payload(project, result)
                    self.tasks.create_or_update_task(
                        project.id,
                        rule.type,
                        payload["title"],
                        payload["description"],
                        payload.get("due_date"),
                    )
                    run_log.created_tasks += 1
                else:
                    self.tasks.complete_task(project.id, rule.type)
                    run_log.completed_tasks += 1

        talents = self.db.query(Talent).all()
        if self.today.weekday() == 0:
            self._check_performance(talents, run_log, details)
        if self.today.day == PRICE_CHECK_DAY_OF_MONTH:
            self._check_prices(talents, run_log, details)

        self.db.commit()
        return len(projects), len(talents)

    # ---- 系统级规则 ----

    def _check_performance(self, talents: List[Talent], run_log: TaskRunLog, details: List[str]):
        """每周一：表现数据超过一周未更新的达人"""
        def stale(talent: Talent) -> bool:
            last = to_date(talent.performance_last_updated)
            return last is None or abs((self.today - last).days) > PERFORMANCE_STALE_DAYS

        outdated = [t for t in talents if stale(t)]
        task_type = "TALENT_PERFORMANCE_UPDATE_REMINDER"
        if outdated:
            self.tasks.create_or_update_task(
                SYSTEM_PROJECT_ID,
                task_type,
                "达人表现数据待更新",
                f"有 {len(outdated)} 位达人的表现(performance)数据超过一周未更新，请及时处理。",
            )
            run_log.created_tasks += 1
            details.append(f"Created performance update task for {len(outdated)} talents.")
        else:
            self.tasks.complete_task(SYSTEM_PROJECT_ID, task_type)
            run_log.completed_tasks += 1

    def _check_prices(self, talents: List[Talent], run_log: TaskRunLog, details: List[str]):
        """每月 2 号：缺少本月已确认报价的达人"""
        year, month = self.today.year, self.today.month

        def has_price(talent: Talent) -> bool:
            prices = talent.prices if isinstance(talent.prices, list) else []
            return any(
                isinstance(p, dict)
                and p.get("year") == year
                and p.get("month") == month
                and p.get("status") == "confirmed"
                for p in prices
            )

        missing = [t for t in talents if not has_price(t)]
        task_type = "TALENT_PRICE_UPDATE_REMINDER"
        if missing:
            self.tasks.create_or_update_task(
                SYSTEM_PROJECT_ID,
                task_type,
                "达人报价待更新",
                f"有 {len(missing)} 位达人缺少本月已确认的报价，请及时更新。",
            )
            run_log.created_tasks += 1
            details.append(f"Created price update task for {len(missing)} talents.")
        else:
            self.tasks.complete_task(SYSTEM_PROJECT_ID, task_type)
            run_log.completed_tasks += 1
