"""
项目资金费率模型
value 为月利率百分比，如 0.7 表示每月 0.7%
"""
from sqlalchemy import Column, String, Numeric, DateTime
from sqlalchemy.sql import func

from kol_app.database import Base


class ProjectCapitalRate(Base):
    __tablename__ = "project_capital_rates"

    id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False)
    value = Column(Numeric(6, 3), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
