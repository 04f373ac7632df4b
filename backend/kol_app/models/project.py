"""
项目模型
"""
import enum
import uuid

from sqlalchemy import Column, String, DateTime, Numeric, JSON, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from kol_app.database import Base


class ProjectStatus(str, enum.Enum):
    """项目状态"""
    IN_PROGRESS = "执行中"
    PENDING_SETTLEMENT = "待结算"
    PAID = "已收款"
    FINALIZED = "已终结"  # 财务数据已关闭，不再估算返点


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(64), primary_key=True, default=lambda: f"proj_{uuid.uuid4().hex[:12]}")
    name = Column(String(200), nullable=False)
    qianchuan_id = Column(String(64), nullable=True)
    type = Column(String(50), nullable=True, index=True)
    year = Column(String(10), nullable=True)
    month = Column(String(10), nullable=True)
    financial_year = Column(String(10), nullable=True, index=True)
    financial_month = Column(String(10), nullable=True)  # 形如 M1 ~ M12
    status = Column(String(20), nullable=True, index=True)

    budget = Column(Numeric(14, 2), nullable=True)
    benchmark_cpm = Column(Numeric(10, 2), nullable=True)  # 目标CPM
    discount = Column(Numeric(8, 4), nullable=True)  # 折扣系数，缺省按 1
    capital_rate_id = Column(String(64), ForeignKey("project_capital_rates.id"), nullable=True)

    adjustments = Column(JSON, nullable=True)  # [{"amount": 100, "reason": "...", "date": "..."}]
    project_files = Column(JSON, nullable=True)  # [{"name": "...", "url": "..."}]
    audit_log = Column(JSON, nullable=True)  # 最新在前
    tracking_enabled = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    capital_rate = relationship("ProjectCapitalRate")
    collaborations = relationship("Collaboration", back_populates="project")
