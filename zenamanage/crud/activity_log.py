"""
Activity log queries.
Entries are append-only and always read newest first.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.crud.base import CRUDBase
from zenamanage.models.activity_log import ActivityLog
from zenamanage.schemas.pagination import page_offset


class CRUDActivityLog(CRUDBase[ActivityLog]):

    async def recent(
        self, db: AsyncSession, *, tenant_id: uuid.UUID, limit: int = 20
    ) -> list[ActivityLog]:
        result = await db.execute(
            self.scoped(tenant_id).order_by(ActivityLog.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_tenant(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        page: int = 1,
        size: int = 20,
        user_id: uuid.UUID | None = None,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        action: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> tuple[list[ActivityLog], int]:
        """One page of a tenant's log plus the total matching count. ``until`` is exclusive."""
        conditions: list[Any] = [ActivityLog.tenant_id == tenant_id]
        if user_id is not None:
            conditions.append(ActivityLog.user_id == user_id)
        if entity_type:
            conditions.append(ActivityLog.entity_type == entity_type)
        if entity_id is not None:
            conditions.append(ActivityLog.entity_id == entity_id)
        if action:
            conditions.append(ActivityLog.action == action)
        if since is not None:
            conditions.append(ActivityLog.created_at >= since)
        if until is not None:
            conditions.append(ActivityLog.created_at < until)

        total = (
            await db.execute(select(func.count()).select_from(ActivityLog).where(*conditions))
        ).scalar_one()
        result = await db.execute(
            select(ActivityLog)
            .where(*conditions)
            .order_by(ActivityLog.created_at.desc())
            .offset(page_offset(page, size))
            .limit(size)
        )
        return list(result.scalars().all()), total


crud_activity_log = CRUDActivityLog(ActivityLog)
