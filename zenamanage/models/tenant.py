"""
Tenant ORM model.
A tenant is an isolated customer organization; every business record hangs off one.
"""
from __future__ import annotations

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zenamanage.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Tenant(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    users: Mapped[list["User"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "User",
        back_populates="tenant",
        cascade="all, delete-orphan",
    )
    projects: Mapped[list["Project"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Project",
        back_populates="tenant",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("ix_tenants_is_active", "is_active"),)

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} slug={self.slug!r}>"
