from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class SortModel(BaseModel):
    key: str = ""
    direction: Literal["asc", "desc"] = "desc"


class ViewFiltersModel(BaseModel):
    search: str = ""
    status: str = ""
    priority: str = ""
    industry: str = ""
    tag: str = ""
    stage: str = ""
    activity_type: str = "all"
    time_window: Literal["all", "today", "week", "month"] = "all"
    sort: Optional[SortModel] = None
    recent_limit: int = Field(default=5, ge=1, le=50)
    upcoming_days: int = Field(default=7, ge=1, le=90)
    refresh: bool = False


class StageMoveModel(BaseModel):
    stage: str = Field(min_length=1)


class NotificationModel(BaseModel):
    level: str
    message: str


class ResultModel(BaseModel):
    ok: bool
    kind: str
    value: Any = None
    errors: List[str] = Field(default_factory=list)
    field_errors: Dict[str, str] = Field(default_factory=dict)
    notifications: List[NotificationModel] = Field(default_factory=list)


class EntityMeta(BaseModel):
    name: str
    label: str
    columns: List[str]
    search_field: str
    options: Dict[str, List[str]] = Field(default_factory=dict)
