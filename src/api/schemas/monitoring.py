"""監視スキーマ"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class ActionSummaryResponse(BaseModel):
    action: str
    entity_type: str
    timestamp: datetime

    model_config = {"from_attributes": True}


class FlagStateResponse(BaseModel):
    monitored: bool
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}


class MonitoredUserResponse(BaseModel):
    user_id: int
    username: str
    email: str
    role: str
    flag_state: FlagStateResponse
    recent_actions: list[ActionSummaryResponse]

    model_config = {"from_attributes": True}


class ActivityStatResponse(BaseModel):
    action: str
    entity_type: str
    count: int

    model_config = {"from_attributes": True}


class UserActivityResponse(BaseModel):
    user_id: int
    window_seconds: float
    stats: list[ActivityStatResponse]


class ActionLogEntryResponse(BaseModel):
    id: int
    user_id: int
    username: str
    email: str
    action: str
    entity_type: str
    entity_id: str | None = None
    details: dict[str, Any] | None = None
    timestamp: datetime

    model_config = {"from_attributes": True}


class ActionLogPageResponse(BaseModel):
    logs: list[ActionLogEntryResponse]
    total: int
    page: int
    total_pages: int

    model_config = {"from_attributes": True}


class ClearMonitoredResponse(BaseModel):
    user_id: int
    cleared: bool


class SweepResponse(BaseModel):
    executed: bool
    window_start: datetime | None = None
    executed_at: datetime | None = None
    suspicious_counts: dict[int, int] = {}
    newly_flagged: list[int] = []
    error: str | None = None
