"""
项目API接口
"""
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from kol_app.config import settings
from kol_app.database import get_db
from kol_app.schemas.project import ProjectUpdate
from kol_app.services.export_service import ExportService
from kol_app.services.project_service import ProjectService

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.get("")
async def get_projects(
    project_id: Optional[str] = Query(None, description="项目ID"),
    view: Optional[str] = Query(None, description="simple 只返回基础字段"),
    db: Session = Depends(get_db),
):
    """获取项目列表，完整视图附带汇总财务指标"""
    service = ProjectService(db)

    if view == "simple":
        return {"success": True, "data": service.list_simple(project_id)}

    projects = service.list_with_metrics(project_id)
    if project_id:
        if not projects:
            raise HTTPException(status_code=404, detail=f"未找到 ID 为 '{project_id}' 的项目")
        return {"success": True, "data": projects[0]}

    return {"success": True, "count": len(projects), "data": projects}


@router.put("")
async def update_project(payload: ProjectUpdate, db: Session = Depends(get_db)):
    """部分更新项目"""
    try:
        project = ProjectService(db).update(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if project is None:
        raise HTTPException(status_code=404, detail=f"ID为 '{payload.id}' 的项目不存在。")
    return {"success": True, "message": "项目信息更新成功。"}


@router.get("/{project_id}/export")
async def export_project(project_id: str, db: Session = Depends(get_db)):
    """导出项目合作明细（xlsx）"""
    try:
        filepath = ExportService(settings.EXPORT_FOLDER).export_project_collaborations(db, project_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not Path(filepath).exists():
        raise HTTPException(status_code=404, detail="导出文件不存在")

    return FileResponse(
        path=filepath,
        filename=Path(filepath).name,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
