"""
ChangeRequest Pydantic schemas.
Includes create/update/read variants, decision payloads and a list filter.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, StringConstraints, field_validator

from zenamanage.core.config import settings
from zenamanage.schemas.common import reject_null

ChangeRequestStatus = Literal["draft", "awaiting_approval", "approved", "rejected", "applied"]
ChangeType = Literal["scope", "cost", "schedule", "quality", "design", "other"]
ChangePriority = Literal["low", "medium", "high", "urgent"]


# ── Create ────────────────────────────────────────────────────────────────────

class ChangeRequestCreate(BaseModel):
    project_id: uuid.UUID
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1, max_length=10000)
    change_type: ChangeType
    priority: ChangePriority = "medium"
    impact_analysis: str | None = None
    justification: str | None = None
    alternatives_considered: str | None = None
    cost_impact: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    schedule_impact_days: int | None = Field(default=None, ge=0)


# ── Update ────────────────────────────────────────────────────────────────────

class ChangeRequestUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1, max_length=10000)
    change_type: ChangeType | None = None
    priority: ChangePriority | None = None
    impact_analysis: str | None = None
    justification: str | None = None
    alternatives_considered: str | None = None
    cost_impact: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    schedule_impact_days: int | None = Field(default=None, ge=0)

    @field_validator("title", "description", "change_type", "priority", mode="before")
    @classmethod
    def required_columns_not_null(cls, v: Any) -> Any:
        return reject_null(v)


# ── Decisions ─────────────────────────────────────────────────────────────────

class ChangeRequestApprove(BaseModel):
    """Approved values default to the requested impacts when omitted."""

    comment: str | None = Field(default=None, max_length=5000)
    approved_cost: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    approved_schedule_days: int | None = Field(default=None, ge=0)


class ChangeRequestReject(BaseModel):
    reason: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=5000)]
    comment: str | None = Field(default=None, max_length=5000)


# ── Read ──────────────────────────────────────────────────────────────────────

class ChangeRequestRead(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    project_id: uuid.UUID
    change_number: str
    title: str
    description: str
    change_type: str
    priority: str
    impact_analysis: str | None
    justification: str | None
    alternatives_considered: str | None
    cost_impact: Decimal | None
    schedule_impact_days: int | None
    status: str
    requested_by: uuid.UUID
    submitted_at: datetime | None
    decided_by: uuid.UUID | None
    decided_at: datetime | None
    decision_comment: str | None
    approved_cost: Decimal | None
    approved_schedule_days: int | None
    rejection_reason: str | None
    applied_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Filter ────────────────────────────────────────────────────────────────────

class ChangeRequestFilter(BaseModel):
    project_id: uuid.UUID | None = None
    status: ChangeRequestStatus | None = None
    change_type: ChangeType | None = None
    search: str | None = Field(default=None, max_length=200)
    page: int = Field(default=1, ge=1)
    size: int = Field(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE)
