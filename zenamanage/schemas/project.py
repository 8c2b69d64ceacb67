"""
Project Pydantic schemas.
Includes create/update/read variants, list filter, and the overview summary.
"""
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from zenamanage.core.config import settings
from zenamanage.schemas.common import reject_null

ProjectStatus = Literal["planning", "active", "on_hold", "completed", "cancelled", "archived"]
ProjectPriority = Literal["low", "normal", "high", "urgent"]


def _check_date_range(start: date | None, end: date | None) -> None:
    if start is not None and end is not None and end < start:
        raise ValueError("end_date must be on or after start_date")


# ── Create ────────────────────────────────────────────────────────────────────

class ProjectCreate(BaseModel):
    code: str = Field(min_length=1, max_length=50, pattern=r"^[A-Za-z0-9_\-]+$")
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10000)
    status: ProjectStatus = "planning"
    priority: ProjectPriority = "normal"
    budget_total: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    start_date: date | None = None
    end_date: date | None = None
    owner_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def validate_dates(self) -> "ProjectCreate":
        _check_date_range(self.start_date, self.end_date)
        return self


# ── Update ────────────────────────────────────────────────────────────────────

class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: ProjectStatus | None = None
    priority: ProjectPriority | None = None
    budget_total: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    start_date: date | None = None
    end_date: date | None = None
    owner_id: uuid.UUID | None = None

    @field_validator("name", "status", "priority", "budget_total", mode="before")
    @classmethod
    def required_columns_not_null(cls, v: Any) -> Any:
        return reject_null(v)

    @model_validator(mode="after")
    def validate_dates(self) -> "ProjectUpdate":
        _check_date_range(self.start_date, self.end_date)
        return self


# ── Read ──────────────────────────────────────────────────────────────────────

class ProjectRead(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    code: str
    name: str
    description: str | None
    status: str
    priority: str
    budget_total: Decimal
    start_date: date | None
    end_date: date | None
    progress_percent: int
    owner_id: uuid.UUID | None
    created_by: uuid.UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectOverview(BaseModel):
    project: ProjectRead
    tasks_by_status: dict[str, int]
    tasks_total: int
    tasks_overdue: int
    open_change_requests: int
    approved_cost_impact: Decimal


# ── Filter ────────────────────────────────────────────────────────────────────

class ProjectFilter(BaseModel):
    """Query parameters for the project list endpoint."""

    status: ProjectStatus | None = None
    search: str | None = Field(default=None, max_length=200)
    page: int = Field(default=1, ge=1)
    size: int = Field(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE)
