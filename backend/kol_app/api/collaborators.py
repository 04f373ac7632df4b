"""
合作记录API接口
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from kol_app.database import get_db
from kol_app.schemas.collaboration import CollaborationUpdate
from kol_app.services.collaboration_service import CollaborationService

router = APIRouter(prefix="/api/collaborators", tags=["collaborators"])


@router.get("")
async def get_collaborators(
    project_id: Optional[str] = Query(None, description="项目ID"),
    collaboration_id: Optional[str] = Query(None, description="合作记录ID"),
    view: Optional[str] = Query(None, description="simple 只返回基础字段"),
    allow_global: bool = Query(False, description="允许不带项目/合作ID的全量查询"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    sort_by: str = Query("createdAt"),
    order: str = Query("desc"),
    db: Session = Depends(get_db),
):
    """
    获取合作记录列表（带财务指标）

    带指标的查询需要限定 project_id 或 collaboration_id，或显式 allow_global=true
    """
    service = CollaborationService(db)

    if view == "simple":
        return {"success": True, "data": service.list_simple(project_id, collaboration_id)}

    if not (project_id or collaboration_id) and not allow_global:
        raise HTTPException(
            status_code=400,
            detail="这是一个重量级查询，请求参数中必须包含 project_id 或 collaboration_id，或明确设置 allow_global=true。",
        )

    total, rows = service.list_with_metrics(
        project_id=project_id,
        collaboration_id=collaboration_id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order,
    )

    if collaboration_id:
        if not rows:
            raise HTTPException(status_code=404, detail="未找到指定的合作记录")
        return {"success": True, "data": rows[0]}

    return {"success": True, "total": total, "page": page, "limit": limit, "data": rows}


@router.put("")
async def update_collaborator(payload: CollaborationUpdate, db: Session = Depends(get_db)):
    """部分更新合作记录"""
    try:
        collaboration = CollaborationService(db).update(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if collaboration is None:
        raise HTTPException(status_code=404, detail=f"ID为 '{payload.id}' 的合作记录不存在。")
    return {"success": True, "message": "合作记录更新成功。"}
