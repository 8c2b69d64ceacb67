"""
Dashboard ORM models.
DashboardWidget is the catalogue, UserDashboard holds a user's layout,
DashboardAlert is a tenant-scoped heads-up shown on the dashboard.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from zenamanage.db.base import Base, TenantScopedMixin, TimestampMixin, UUIDPrimaryKeyMixin

ALERT_SEVERITIES = ("info", "warning", "critical")


class DashboardWidget(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Global widget catalogue; visibility is decided per role from `permissions`."""

    __tablename__ = "dashboard_widgets"

    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    permissions: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    default_size: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )

    def __repr__(self) -> str:
        return f"<DashboardWidget code={self.code!r} active={self.is_active}>"


class UserDashboard(UUIDPrimaryKeyMixin, TenantScopedMixin, TimestampMixin, Base):
    __tablename__ = "user_dashboards"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    layout: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    widgets: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    preferences: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<UserDashboard user_id={self.user_id} widgets={len(self.widgets or [])}>"


class DashboardAlert(UUIDPrimaryKeyMixin, TenantScopedMixin, TimestampMixin, Base):
    __tablename__ = "dashboard_alerts"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
    )
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(
        Enum(*ALERT_SEVERITIES, name="dashboard_alert_severity_enum"),
        nullable=False,
        default="info",
        server_default="info",
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(String(2000), nullable=False)
    is_read: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_dashboard_alerts_user_is_read", "user_id", "is_read"),
        Index("ix_dashboard_alerts_project_id", "project_id"),
    )

    def __repr__(self) -> str:
        return f"<DashboardAlert id={self.id} type={self.type!r} severity={self.severity}>"
