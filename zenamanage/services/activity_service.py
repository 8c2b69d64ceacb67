"""
Activity logging service.
Writes immutable, tenant-scoped audit records to the activity_logs table.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)


class ActivityService:

    @staticmethod
    def diff(record: Any, changes: dict[str, Any]) -> dict[str, Any]:
        """
        Describe an update as ``{field: {"from": old, "to": new}}``.
        Must be called before the changes are applied; unchanged fields are left out.
        """
        delta = {
            field: {"from": getattr(record, field, None), "to": value}
            for field, value in changes.items()
            if getattr(record, field, None) != value
        }
        return jsonable_encoder(delta)

    async def log(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        meta: dict[str, Any] | None = None,
    ) -> ActivityLog:
        """
        Create an activity log entry inside the caller's transaction,
        so the audit row commits or rolls back together with the change it records.
        """
        entry = ActivityLog(
            tenant_id=tenant_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            meta=meta or None,
        )
        db.add(entry)
        await db.flush()
        logger.debug(
            "Activity %s on %s:%s by user_id=%s (tenant_id=%s)",
            action,
            entity_type,
            entity_id,
            user_id,
            tenant_id,
        )
        return entry


activity_service = ActivityService()
