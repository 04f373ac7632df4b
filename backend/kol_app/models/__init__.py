"""
数据模型
"""
from kol_app.models.capital_rate import ProjectCapitalRate
from kol_app.models.project import Project, ProjectStatus
from kol_app.models.talent import Talent
from kol_app.models.collaboration import Collaboration, CollaborationStatus, OrderType, AGGREGATE_STATUSES
from kol_app.models.work import Work, WorkDailyStat
from kol_app.models.task import Task, TaskRunLog, SYSTEM_PROJECT_ID

__all__ = [
    "ProjectCapitalRate",
    "Project",
    "ProjectStatus",
    "Talent",
    "Collaboration",
    "CollaborationStatus",
    "OrderType",
    "AGGREGATE_STATUSES",
    "Work",
    "WorkDailyStat",
    "Task",
    "TaskRunLog",
    "SYSTEM_PROJECT_ID",
]
