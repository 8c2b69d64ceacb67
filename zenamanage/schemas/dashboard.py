"""
Dashboard Pydantic schemas: widget catalogue, user layouts, metrics and alerts.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


# ── Widgets ───────────────────────────────────────────────────────────────────

class WidgetRead(BaseModel):
    id: uuid.UUID
    code: str
    name: str
    type: str
    category: str
    description: str | None
    permissions: dict[str, Any] | None
    default_size: dict[str, Any] | None

    model_config = {"from_attributes": True}


class WidgetInstance(BaseModel):
    """A placed widget inside a user's dashboard layout."""

    id: str
    widget_code: str
    title: str
    size: dict[str, Any] = Field(default_factory=dict)
    position: dict[str, Any] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict)


class WidgetAdd(BaseModel):
    widget_code: str = Field(min_length=1, max_length=100)
    title: str | None = Field(default=None, max_length=255)
    size: dict[str, Any] | None = None
    position: dict[str, Any] | None = None
    config: dict[str, Any] = Field(default_factory=dict)


class WidgetData(BaseModel):
    widget_code: str
    data: dict[str, Any]


# ── Layout ────────────────────────────────────────────────────────────────────

class DashboardRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    layout: dict[str, Any]
    widgets: list[WidgetInstance]
    preferences: dict[str, Any] | None
    updated_at: datetime

    model_config = {"from_attributes": True}


class LayoutUpdate(BaseModel):
    layout: dict[str, Any] = Field(default_factory=dict)
    widgets: list[WidgetInstance] | None = None
    preferences: dict[str, Any] | None = None


# ── Metrics ───────────────────────────────────────────────────────────────────

class DashboardMetrics(BaseModel):
    projects_active: int
    projects_total: int
    tasks_total: int
    tasks_overdue: int
    change_requests_pending: int
    budget_total: Decimal


# ── Alerts ────────────────────────────────────────────────────────────────────

class AlertRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    project_id: uuid.UUID | None
    type: str
    category: str
    severity: str
    title: str
    message: str
    is_read: bool
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AlertsReadAllResult(BaseModel):
    updated: int
