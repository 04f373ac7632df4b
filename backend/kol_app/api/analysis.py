"""
经营分析API接口
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kol_app.database import get_db
from kol_app.schemas.report import AnalysisRequest
from kol_app.services.analysis_service import AnalysisService

router = APIRouter(prefix="/api/analysis", tags=["analysis"])


@router.post("")
async def get_analysis_data(payload: AnalysisRequest, db: Session = Depends(get_db)):
    data = AnalysisService(db).get_analysis(
        payload.filters,
        talent_sort_by=payload.talent_sort_by,
        talent_limit=payload.talent_limit,
    )
    return {"success": True, "data": data}
