"""
待办任务 - Schemas
"""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    related_project_id: str
    type: str
    title: str
    description: Optional[str] = None
    status: str
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TaskRunLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    timestamp: datetime
    trigger_type: str
    status: str
    summary: Optional[str] = None
    created_tasks: int
    completed_tasks: int
    details: Optional[List[Any]] = None
    error: Optional[dict] = None
