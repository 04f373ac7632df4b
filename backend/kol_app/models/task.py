"""
待办任务与扫描日志模型
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, UniqueConstraint, Index

from kol_app.database import Base


SYSTEM_PROJECT_ID = "system_maintenance"  # 系统级任务挂靠的虚拟项目ID


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    related_project_id = Column(String(64), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default="pending", nullable=False, index=True)  # pending / COMPLETED
    due_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("related_project_id", "type", name="uq_task_project_type"),
    )


class TaskRunLog(Base):
    __tablename__ = "task_run_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    trigger_type = Column(String(20), nullable=False)  # MANUAL / SCHEDULED
    status = Column(String(20), nullable=False)  # PENDING / SUCCESS / FAILURE
    summary = Column(Text, nullable=True)
    created_tasks = Column(Integer, default=0, nullable=False)
    completed_tasks = Column(Integer, default=0, nullable=False)
    details = Column(JSON, nullable=True)
    error = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_task_run_logs_timestamp", "timestamp"),
    )
