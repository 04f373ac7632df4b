"""
测试公共夹具：内存 SQLite + 覆盖 get_db 的 TestClient
"""
import os

# 必须在导入 kol_app 之前设置
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_DEFAULT"] = "10000/minute"

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from kol_app.database import get_db, init_db  # noqa: E402
from kol_app.models import (  # noqa: E402
    Collaboration,
    Project,
    ProjectCapitalRate,
    Talent,
)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from kol_app.main import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def seed(db):
    """一个执行中的项目、一个达人和两条合作（已发布 + 洽谈中）"""
    rate = ProjectCapitalRate(id="rate_1", name="标准", value=0.7)
    talent = Talent(id="talent_1", nickname="小鱼", xingtu_id="xt_1", uid="u_1", talent_tier="头部", talent_type=["美妆"])
    project = Project(
        id="proj_1",
        name="春季新品",
        type="品牌",
        financial_year="2024",
        financial_month="M1",
        status="执行中",
        discount=1,
        budget=50000,
        capital_rate_id="rate_1",
        adjustments=[],
        audit_log=[],
    )
    published = Collaboration(
        id="collab_1",
        project_id="proj_1",
        talent_id="talent_1",
        amount=10000,
        rebate=20,
        order_type="original",
        status="视频已发布",
        order_date=date(2024, 1, 1),
        payment_date=date(2024, 1, 11),
        publish_date=date(2024, 1, 5),
    )
    negotiating = Collaboration(
        id="collab_2",
        project_id="proj_1",
        talent_id="talent_1",
        amount=8000,
        rebate=10,
        order_type="modified",
        status="洽谈中",
    )
    db.add_all([rate, talent, project, published, negotiating])
    db.commit()
    return {"project": project, "talent": talent, "published": published, "negotiating": negotiating}
