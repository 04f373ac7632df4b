"""
日报 / 数据分析 - Schemas
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DailyStatItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    collaboration_id: str = Field(..., alias="collaborationId")
    total_views: int = Field(..., alias="totalViews", ge=0)


class DailyStatsSaveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., alias="projectId")
    date: str  # YYYY-MM-DD
    data: List[DailyStatItem]


class ReportSolutionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    collaboration_id: str = Field(..., alias="collaborationId")
    date: str
    solution: str = ""


class AnalysisFilters(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    year: Optional[str] = None
    project_type: Optional[str] = Field(None, alias="projectType")


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filters: AnalysisFilters = AnalysisFilters()
    talent_sort_by: str = Field("totalProfit", alias="talentSortBy")
    talent_limit: int = Field(20, alias="talentLimit", ge=1, le=200)
