from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class NotificationOut(BaseModel):
    dataset: str
    identity: Any = None
    field: str
    record: dict[str, Any]


class DatasetOut(BaseModel):
    success: bool = True
    data: list[dict[str, Any]]
    last_update: datetime | None
    notifications: list[NotificationOut] = Field(default_factory=list)


class ClearNotificationsRequest(BaseModel):
    dataset: str = Field(min_length=1)


class ClearNotificationsResponse(BaseModel):
    success: bool = True
    dataset: str
    message: str


class RefreshRequest(BaseModel):
    target: str = Field(default="all", min_length=1)


class SyncOutcomeOut(BaseModel):
    dataset: str
    status: Literal["updated", "no_data", "stale", "failed"]
    success: bool
    started_at: datetime
    records: int
    notifications: int
    error: str | None = None


class RefreshResponse(BaseModel):
    success: bool
    outcomes: list[SyncOutcomeOut]


class SyncStatusOut(BaseModel):
    enabled: bool
    strategy: str
    datasets: list[str]
    last_updates: dict[str, datetime | None]
    consecutive_failures: int
    lease_valid: bool | None
    lease_expires_at: datetime | None
    cache_status: dict[str, dict[str, Any]]
    last_outcomes: dict[str, SyncOutcomeOut]
    scheduler: dict[str, Any] = Field(default_factory=dict)
