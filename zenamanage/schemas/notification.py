"""
Notification and notification-rule Pydantic schemas.
The list endpoint uses a {data, meta} envelope instead of PaginatedResponse.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator

from zenamanage.core.config import settings
from zenamanage.schemas.common import reject_null

NotificationPriority = Literal["low", "normal", "high", "critical"]
NotificationChannel = Literal["inapp", "realtime"]


class NotificationRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    module: str
    type: str
    priority: str
    title: str
    message: str
    entity_type: str | None
    entity_id: uuid.UUID | None
    is_read: bool
    read_at: datetime | None
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationPageMeta(BaseModel):
    current_page: int
    per_page: int
    total: int
    last_page: int
    from_: int | None = Field(default=None, alias="from")
    to: int | None = None
    unread_count: int

    model_config = {"populate_by_name": True}


class NotificationPage(BaseModel):
    data: list[NotificationRead]
    meta: NotificationPageMeta


class NotificationFilter(BaseModel):
    is_read: bool | None = None
    module: str | None = Field(default=None, max_length=50)
    search: str | None = Field(default=None, max_length=200)
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE)


class MarkAllReadResult(BaseModel):
    updated: int


# ── Rules ─────────────────────────────────────────────────────────────────────

def _dedupe_channels(channels: list[str]) -> list[str]:
    return list(dict.fromkeys(channels))


class NotificationRuleCreate(BaseModel):
    event_key: str = Field(min_length=1, max_length=100)
    project_id: uuid.UUID | None = None
    min_priority: NotificationPriority = "low"
    channels: list[NotificationChannel] = Field(default_factory=lambda: ["inapp"])
    is_enabled: bool = True

    @field_validator("channels")
    @classmethod
    def dedupe_channels(cls, v: list[str]) -> list[str]:
        return _dedupe_channels(v)


class NotificationRuleUpdate(BaseModel):
    project_id: uuid.UUID | None = None
    min_priority: NotificationPriority | None = None
    channels: list[NotificationChannel] | None = None
    is_enabled: bool | None = None

    @field_validator("min_priority", "channels", "is_enabled", mode="before")
    @classmethod
    def required_columns_not_null(cls, v: Any) -> Any:
        return reject_null(v)

    @field_validator("channels")
    @classmethod
    def dedupe_channels(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else _dedupe_channels(v)


class NotificationRuleRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    event_key: str
    project_id: uuid.UUID | None
    min_priority: str
    channels: list[str]
    is_enabled: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
