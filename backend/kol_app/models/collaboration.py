"""
合作记录模型（项目 x 达人）
"""
import enum
import uuid

from sqlalchemy import Column, String, Date, DateTime, Numeric, JSON, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from kol_app.database import Base


class CollaborationStatus(str, enum.Enum):
    """合作状态（只列出业务口径里用到的几种）"""
    CONFIRMED = "客户已定档"
    PUBLISHED = "视频已发布"
    TERMINATED = "已终结"


# 参与项目汇总/报表统计的状态
AGGREGATE_STATUSES = (CollaborationStatus.CONFIRMED.value, CollaborationStatus.PUBLISHED.value)


class OrderType(str, enum.Enum):
    ORIGINAL = "original"  # 原价下单，返点全额应收
    MODIFIED = "modified"


class Collaboration(Base):
    __tablename__ = "collaborations"

    id = Column(String(64), primary_key=True, default=lambda: f"collab_{uuid.uuid4().hex[:12]}")
    project_id = Column(String(64), ForeignKey("projects.id"), nullable=False, index=True)
    talent_id = Column(String(64), ForeignKey("talents.id"), nullable=False, index=True)
    talent_source = Column(String(50), nullable=True)  # 创建时快照

    amount = Column(Numeric(14, 2), nullable=True)  # 合作金额
    price_info = Column(String(200), nullable=True)
    rebate = Column(Numeric(6, 2), nullable=True)  # 返点百分比 0~100
    actual_rebate = Column(Numeric(14, 2), nullable=True)  # 实收返点（覆盖估算）
    order_type = Column(String(20), nullable=True)
    status = Column(String(20), nullable=True, index=True)

    order_date = Column(Date, nullable=True)
    planned_release_date = Column(Date, nullable=True)
    publish_date = Column(Date, nullable=True)
    payment_date = Column(Date, nullable=True)
    recovery_date = Column(Date, nullable=True)
    video_id = Column(String(64), nullable=True)

    content_file = Column(String(500), nullable=True)
    task_id = Column(String(64), nullable=True)
    rebate_screenshots = Column(JSON, nullable=True)
    discrepancy_reason = Column(Text, nullable=True)
    discrepancy_reason_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("idx_collaborations_project_status", "project_id", "status"),
    )

    project = relationship("Project", back_populates="collaborations")
    talent = relationship("Talent")
    work = relationship("Work", back_populates="collaboration", uselist=False)
