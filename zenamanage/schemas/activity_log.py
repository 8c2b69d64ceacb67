"""
ActivityLog Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ActivityLogRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    action: str
    entity_type: str
    entity_id: uuid.UUID
    meta: dict[str, Any] | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ActivityLogFilter(BaseModel):
    """Tenant-wide audit filters."""

    entity_type: str | None = Field(default=None, max_length=100)
    action: str | None = Field(default=None, max_length=200)
    user_id: uuid.UUID | None = None
    since: datetime | None = None
    until: datetime | None = None
