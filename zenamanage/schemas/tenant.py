"""
Tenant Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from zenamanage.schemas.user import UserRead


class TenantRead(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class RegistrationResult(BaseModel):
    tenant: TenantRead
    user: UserRead
