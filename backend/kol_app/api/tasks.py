"""
待办任务API接口
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from kol_app.database import get_db
from kol_app.schemas.task import TaskResponse, TaskRunLogResponse
from kol_app.services.scheduler import run_task_scan
from kol_app.services.task_service import TRIGGER_MANUAL, TaskService

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("")
async def list_tasks(
    status: Optional[str] = Query(None, description="pending / COMPLETED"),
    project_id: Optional[str] = Query(None, description="关联项目ID"),
    db: Session = Depends(get_db),
):
    tasks = TaskService(db).list_tasks(status=status, project_id=project_id)
    return {"success": True, "data": [TaskResponse.model_validate(t).model_dump() for t in tasks]}


@router.get("/logs")
async def list_task_logs(limit: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    logs = TaskService(db).list_logs(limit)
    return {"success": True, "data": [TaskRunLogResponse.model_validate(log).model_dump() for log in logs]}


@router.post("/scan")
async def trigger_scan(db: Session = Depends(get_db)):
    """手动触发一次任务扫描，与定时扫描互斥"""
    run_log = run_task_scan(TRIGGER_MANUAL, db)
    if run_log is None:
        raise HTTPException(status_code=409, detail="上一轮任务扫描尚未完成，请稍后再试")
    return {
        "success": True,
        "message": "手动触发成功，扫描任务已完成。",
        "data": TaskRunLogResponse.model_validate(run_log).model_dump(),
    }
