"""
合作记录 - Schemas
"""
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

NumberLike = Union[float, int, str]


class CollaborationUpdate(BaseModel):
    """部分更新：只处理请求里出现的字段，null / 空串 / 空列表表示清空"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    amount: Optional[NumberLike] = None
    price_info: Optional[str] = Field(None, alias="priceInfo")
    rebate: Optional[NumberLike] = None
    order_type: Optional[str] = Field(None, alias="orderType")
    status: Optional[str] = None
    order_date: Optional[str] = Field(None, alias="orderDate")
    publish_date: Optional[str] = Field(None, alias="publishDate")
    video_id: Optional[str] = Field(None, alias="videoId")
    payment_date: Optional[str] = Field(None, alias="paymentDate")
    actual_rebate: Optional[NumberLike] = Field(None, alias="actualRebate")
    recovery_date: Optional[str] = Field(None, alias="recoveryDate")
    content_file: Optional[str] = Field(None, alias="contentFile")
    task_id: Optional[str] = Field(None, alias="taskId")
    rebate_screenshots: Optional[List[Any]] = Field(None, alias="rebateScreenshots")
    discrepancy_reason: Optional[str] = Field(None, alias="discrepancyReason")
    discrepancy_reason_updated_at: Optional[str] = Field(None, alias="discrepancyReasonUpdatedAt")
    planned_release_date: Optional[str] = Field(None, alias="plannedReleaseDate")

    def changes(self) -> dict:
        """请求中显式给出的字段（不含 id）"""
        data = self.model_dump(exclude_unset=True)
        data.pop("id", None)
        return data
