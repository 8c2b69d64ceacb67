"""
ActivityLog ORM model.
Immutable, tenant-scoped audit trail of all significant actions in the system.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from zenamanage.db.base import Base, TenantScopedMixin, UUIDPrimaryKeyMixin, utcnow


class ActivityLog(UUIDPrimaryKeyMixin, TenantScopedMixin, Base):
    __tablename__ = "activity_logs"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    action: Mapped[str] = mapped_column(String(200), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    meta: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # Every read is tenant-first: the feed, one record's history, or one user's trail.
    __table_args__ = (
        Index("ix_activity_logs_tenant_created", "tenant_id", "created_at"),
        Index("ix_activity_logs_tenant_entity", "tenant_id", "entity_type", "entity_id"),
        Index("ix_activity_logs_tenant_user", "tenant_id", "user_id", "created_at"),
        Index("ix_activity_logs_action", "action"),
    )

    def __repr__(self) -> str:
        return (
            f"<ActivityLog id={self.id} user_id={self.user_id} "
            f"action={self.action!r} entity_type={self.entity_type!r}>"
        )
