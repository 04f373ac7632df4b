"""
达人模型
"""
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func

from kol_app.database import Base


class Talent(Base):
    __tablename__ = "talents"

    id = Column(String(64), primary_key=True)
    nickname = Column(String(100), nullable=False)
    xingtu_id = Column(String(64), nullable=True, index=True)
    uid = Column(String(64), nullable=True)
    talent_tier = Column(String(20), nullable=True)
    talent_type = Column(JSON, nullable=True)  # 标签列表

    performance_last_updated = Column(DateTime(timezone=True), nullable=True)
    prices = Column(JSON, nullable=True)  # [{"year": 2024, "month": 5, "status": "confirmed", "price": 1000}]

    created_at = Column(DateTime(timezone=True), server_default=func.now())
