"""
Project ORM model.
A construction project inside a tenant; owns tasks and change requests.
"""
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Date,
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

PROJECT_STATUSES = ("planning", "active", "on_hold", "completed", "cancelled", "archived")
PROJECT_PRIORITIES = ("low", "normal", "high", "urgent")

# Projects in these states accept no new work
CLOSED_PROJECT_STATUSES = frozenset({"completed", "cancelled", "archived"})


class Project(UUIDPrimaryKeyMixin, TenantScopedMixin, TimestampMixin, Base):
    __tablename__ = "projects"

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(*PROJECT_STATUSES, name="project_status_enum"),
        nullable=False,
        default="planning",
        server_default="planning",
    )
    priority: Mapped[str] = mapped_column(
        Enum(*PROJECT_PRIORITIES, name="project_priority_enum"),
        nullable=False,
        default="normal",
        server_default="normal",
    )
    budget_total: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    progress_percent: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    tenant: Mapped["Tenant"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Tenant",
        back_populates="projects",
    )
    tasks: Mapped[list["Task"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Task",
        back_populates="project",
        cascade="all, delete-orphan",
    )
    change_requests: Mapped[list["ChangeRequest"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "ChangeRequest",
        back_populates="project",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_projects_tenant_code"),
        Index("ix_projects_tenant_status", "tenant_id", "status"),
    )

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_PROJECT_STATUSES

    def __repr__(self) -> str:
        return f"<Project id={self.id} code={self.code!r} status={self.status}>"
