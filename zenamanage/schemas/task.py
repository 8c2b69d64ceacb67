"""
Task Pydantic schemas.
Includes create/update/read variants, status changes, dependencies,
reordering and bulk actions, plus a filter schema for list endpoints.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from zenamanage.core.config import settings
from zenamanage.schemas.common import reject_null

TaskStatus = Literal["backlog", "in_progress", "blocked", "done", "canceled"]
TaskPriority = Literal["low", "normal", "high", "urgent"]


# ── Create ────────────────────────────────────────────────────────────────────

class TaskCreate(BaseModel):
    project_id: uuid.UUID
    title: str = Field(min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=10000)
    status: Literal["backlog", "in_progress"] = "backlog"
    priority: TaskPriority = "normal"
    due_date: datetime | None = None
    assignee_id: uuid.UUID | None = None
    tags: list[str] = Field(default_factory=list, max_length=20)


# ── Update ────────────────────────────────────────────────────────────────────

class TaskUpdate(BaseModel):
    """Editable fields. Status goes through the dedicated status endpoint."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    progress_percent: int | None = Field(default=None, ge=0, le=100)
    tags: list[str] | None = Field(default=None, max_length=20)

    @field_validator("title", "priority", "progress_percent", mode="before")
    @classmethod
    def required_columns_not_null(cls, v: Any) -> Any:
        return reject_null(v)


class TaskAssign(BaseModel):
    assignee_id: uuid.UUID


class TaskStatusChange(BaseModel):
    status: TaskStatus
    reason: str | None = Field(default=None, max_length=1000)


# ── Read ──────────────────────────────────────────────────────────────────────

class TaskRead(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    project_id: uuid.UUID
    title: str
    description: str | None
    status: str
    status_reason: str | None
    priority: str
    due_date: datetime | None
    progress_percent: int
    sort_order: int
    assignee_id: uuid.UUID | None
    created_by: uuid.UUID
    tags: list[str] | None
    is_archived: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Dependencies ──────────────────────────────────────────────────────────────

class TaskDependencyCreate(BaseModel):
    depends_on_id: uuid.UUID


class TaskDependencyRead(BaseModel):
    task_id: uuid.UUID
    depends_on_id: uuid.UUID
    depends_on_title: str
    depends_on_status: str


# ── Reorder / bulk ────────────────────────────────────────────────────────────

class TaskReorder(BaseModel):
    ordered_ids: list[uuid.UUID] = Field(min_length=1, max_length=1000)

    @field_validator("ordered_ids")
    @classmethod
    def reject_duplicates(cls, v: list[uuid.UUID]) -> list[uuid.UUID]:
        if len(set(v)) != len(v):
            raise ValueError("ordered_ids must not contain duplicates")
        return v


BulkAction = Literal["archive", "assign", "set_priority"]


class BulkTaskAction(BaseModel):
    task_ids: list[uuid.UUID] = Field(min_length=1, max_length=settings.BULK_MAX_ITEMS)
    action: BulkAction
    value: str | None = None


class BulkTaskFailure(BaseModel):
    id: uuid.UUID
    error: str


class BulkTaskResult(BaseModel):
    processed: int
    failed: list[BulkTaskFailure]


# ── Filter ────────────────────────────────────────────────────────────────────

class TaskFilter(BaseModel):
    """Query parameters for filtering task list endpoints."""

    project_id: uuid.UUID | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assignee_id: uuid.UUID | None = None
    is_archived: bool = False
    due_before: datetime | None = None
    search: str | None = Field(default=None, max_length=200)
    page: int = Field(default=1, ge=1)
    size: int = Field(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE)
