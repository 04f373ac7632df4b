import atexit
import logging

from fastapi import FastAPI, Request, status, HTTPException
from starlette.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

# 速率限制
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from kol_app.config import settings
from kol_app.database import init_db
from kol_app.logging_config import configure_logging
from kol_app.services.scheduler import start_scheduler, shutdown_scheduler
from kol_app.api import (
    analysis,
    collaborators,
    projects,
    reports,
    tasks,
)

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="KOL Campaign Backend API")

# 速率限制：按客户端 IP
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT_DEFAULT])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "Accept", "Origin"],
    expose_headers=["Content-Disposition"],
    max_age=3600,
)


def get_cors_headers(origin: str = None) -> dict:
    """错误响应也要带上 CORS 头，只回显白名单内的 Origin"""
    headers = {
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type, X-Requested-With, Accept, Origin",
        "Access-Control-Allow-Credentials": "true",
    }
    if origin and origin in settings.CORS_ORIGINS:
        headers["Access-Control-Allow-Origin"] = origin
    return headers


# 全局异常处理器 - 确保所有错误响应都包含CORS头
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    headers = get_cors_headers(request.headers.get("origin"))
    logger.error(f"未处理异常: {request.method} {request.url.path}: {type(exc).__name__}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "服务器内部错误", "type": type(exc).__name__},
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTP异常处理器，确保包含CORS头"""
    headers = get_cors_headers(request.headers.get("origin"))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers,
    )


@app.exception_handler(HTTPException)
async def fastapi_http_exception_handler(request: Request, exc: HTTPException):
    headers = get_cors_headers(request.headers.get("origin"))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求验证异常处理器，确保包含CORS头"""
    headers = get_cors_headers(request.headers.get("origin"))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()},
        headers=headers,
    )


# API routes
app.include_router(collaborators.router)
app.include_router(projects.router)
app.include_router(reports.router)
app.include_router(analysis.router)
app.include_router(tasks.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/")
def root():
    return {"message": "KOL campaign backend is running", "docs": "/docs"}


@app.on_event("startup")
async def startup_event():
    """应用启动时执行"""
    init_db()
    if not settings.SCHEDULER_ENABLED:
        logger.info("定时任务调度器未启用")
        return
    try:
        start_scheduler()
    except Exception as e:
        # 调度器启动失败不阻止应用启动
        logger.error(f"定时任务调度器启动失败: {e}", exc_info=True)


@app.on_event("shutdown")
async def shutdown_event():
    """应用关闭时执行"""
    try:
        shutdown_scheduler()
    except Exception as e:
        logger.warning(f"定时任务调度器关闭失败: {e}")


# 注册退出时的清理函数
atexit.register(shutdown_scheduler)
