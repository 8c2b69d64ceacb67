"""
ChangeRequest ORM model.
A proposed scope/cost/schedule change to a project, moving through
draft -> awaiting_approval -> approved | rejected, and approved -> applied.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zenamanage.db.base import Base, TenantScopedMixin, TimestampMixin, UUIDPrimaryKeyMixin

CHANGE_REQUEST_STATUSES = ("draft", "awaiting_approval", "approved", "rejected", "applied")
CHANGE_TYPES = ("scope", "cost", "schedule", "quality", "design", "other")
CHANGE_PRIORITIES = ("low", "medium", "high", "urgent")


class ChangeRequest(UUIDPrimaryKeyMixin, TenantScopedMixin, TimestampMixin, Base):
    __tablename__ = "change_requests"

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    change_number: Mapped[str] = mapped_column(String(80), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    change_type: Mapped[str] = mapped_column(
        Enum(*CHANGE_TYPES, name="change_type_enum"),
        nullable=False,
    )
    priority: Mapped[str] = mapped_column(
        Enum(*CHANGE_PRIORITIES, name="change_priority_enum"),
        nullable=False,
        default="medium",
        server_default="medium",
    )
    impact_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)
    justification: Mapped[str | None] = mapped_column(Text, nullable=True)
    alternatives_considered: Mapped[str | None] = mapped_column(Text, nullable=True)
    cost_impact: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    schedule_impact_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(*CHANGE_REQUEST_STATUSES, name="change_request_status_enum"),
        nullable=False,
        default="draft",
        server_default="draft",
    )
    requested_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # ── Decision ──────────────────────────────────────────────────────────────
    decided_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decision_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_cost: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    approved_schedule_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # ── Relationships ─────────────────────────────────────────────────────────
    project: Mapped["Project"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Project",
        back_populates="change_requests",
    )

    __table_args__ = (
        UniqueConstraint("project_id", "sequence", name="uq_change_requests_project_sequence"),
        Index("ix_change_requests_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<ChangeRequest id={self.id} number={self.change_number!r} "
            f"status={self.status}>"
        )
