"""
项目日报API接口
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from kol_app.database import get_db
from kol_app.schemas.report import DailyStatsSaveRequest, ReportSolutionRequest
from kol_app.services.report_service import ReportService

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.post("/daily-stats")
async def save_daily_stats(payload: DailyStatsSaveRequest, db: Session = Depends(get_db)):
    """录入某天各视频的累计播放量，同一天重复提交会覆盖"""
    try:
        result = ReportService(db).save_daily_stats(payload.project_id, payload.date, payload.data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, **result}


@router.get("/project-report")
async def get_project_report(
    project_id: str = Query(..., description="项目ID"),
    date: Optional[str] = Query(None, description="日期，格式：YYYY-MM-DD，默认今天"),
    db: Session = Depends(get_db),
):
    try:
        data = ReportService(db).get_report_data(project_id, date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": data}


@router.get("/videos-for-entry")
async def get_videos_for_entry(
    project_id: str = Query(..., description="项目ID"),
    date: Optional[str] = Query(None, description="日期，格式：YYYY-MM-DD，默认今天"),
    db: Session = Depends(get_db),
):
    try:
        data = ReportService(db).get_videos_for_entry(project_id, date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": data}


@router.post("/report-solution")
async def save_report_solution(payload: ReportSolutionRequest, db: Session = Depends(get_db)):
    try:
        result = ReportService(db).save_report_solution(payload.collaboration_id, payload.date, payload.solution)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, **result}
