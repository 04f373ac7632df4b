"""
数据库连接

进程内只创建一次 engine / SessionLocal，请求通过 get_db 获取会话。
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from kol_app.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # SQLite 需要允许跨线程（FastAPI 线程池 + APScheduler）
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI 依赖：请求级数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """建表（首次启动 / 测试）"""
    import kol_app.models  # noqa: F401  注册所有模型

    Base.metadata.create_all(bind=bind or engine)
