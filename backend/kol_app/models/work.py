"""
作品模型及每日播放数据
每个合作最多一条作品记录，每日数据按 (work_id, date) 唯一
"""
import uuid

from sqlalchemy import (
    Column, Integer, BigInteger, String, Date, DateTime, Float, Text,
    ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from kol_app.database import Base


def new_work_id() -> str:
    return f"work_{uuid.uuid4().hex[:12]}"


class Work(Base):
    __tablename__ = "works"

    id = Column(String(64), primary_key=True, default=new_work_id)
    collaboration_id = Column(String(64), ForeignKey("collaborations.id", ondelete="CASCADE"), nullable=False, unique=True)
    project_id = Column(String(64), nullable=True, index=True)
    talent_id = Column(String(64), nullable=True)
    task_id = Column(String(64), nullable=True)
    platform_work_id = Column(String(64), nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    source_type = Column(String(20), default="COLLABORATION", nullable=False)

    t7_stats_updated_at = Column(DateTime(timezone=True), nullable=True)
    t21_stats_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    collaboration = relationship("Collaboration", back_populates="work")
    daily_stats = relationship(
        "WorkDailyStat",
        back_populates="work",
        order_by="WorkDailyStat.date",
        cascade="all, delete-orphan",
    )


class WorkDailyStat(Base):
    __tablename__ = "work_daily_stats"

    id = Column(Integer, primary_key=True, index=True)
    work_id = Column(String(64), ForeignKey("works.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    total_views = Column(BigInteger, default=0, nullable=False)
    cpm = Column(Float, default=0.0, nullable=False)
    cpm_change = Column(Float, nullable=True)  # 前一天无数据时为空
    solution = Column(Text, default="", nullable=False)

    __table_args__ = (
        UniqueConstraint("work_id", "date", name="uq_work_daily_stat_work_date"),
    )

    work = relationship("Work", back_populates="daily_stats")
