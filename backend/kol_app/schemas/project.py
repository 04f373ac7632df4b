"""
项目 - Schemas
"""
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ProjectAdjustment(BaseModel):
    """手工收支调整，正数计入收入，负数计入支出"""
    model_config = ConfigDict(extra="allow")

    amount: Union[float, str, None] = None
    reason: Optional[str] = None
    date: Optional[str] = None


class ProjectUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: Optional[str] = None
    qianchuan_id: Optional[str] = Field(None, alias="qianchuanId")
    type: Optional[str] = None
    budget: Optional[Union[float, str]] = None
    benchmark_cpm: Optional[Union[float, str]] = Field(None, alias="benchmarkCPM")
    year: Optional[Union[str, int]] = None
    month: Optional[Union[str, int]] = None
    financial_year: Optional[Union[str, int]] = Field(None, alias="financialYear")
    financial_month: Optional[str] = Field(None, alias="financialMonth")
    discount: Optional[Union[float, str]] = None
    capital_rate_id: Optional[str] = Field(None, alias="capitalRateId")
    status: Optional[str] = None
    adjustments: Optional[List[ProjectAdjustment]] = None
    project_files: Optional[List[Any]] = Field(None, alias="projectFiles")
    tracking_enabled: Optional[Union[bool, str]] = Field(None, alias="trackingEnabled")

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        data.pop("id", None)
        return data
