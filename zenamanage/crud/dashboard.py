"""
Dashboard CRUD operations: widget catalogue, user layouts and alerts.
"""
from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.crud.base import CRUDBase
from zenamanage.db.base import utcnow
from zenamanage.models.dashboard import DashboardAlert, DashboardWidget, UserDashboard


class CRUDDashboardWidget(CRUDBase[DashboardWidget]):

    async def list_active(self, db: AsyncSession) -> list[DashboardWidget]:
        result = await db.execute(
            select(DashboardWidget)
            .where(DashboardWidget.is_active.is_(True))
            .order_by(DashboardWidget.category, DashboardWidget.code)
        )
        return list(result.scalars().all())

    async def get_by_code(self, db: AsyncSession, code: str) -> DashboardWidget | None:
        result = await db.execute(select(DashboardWidget).where(DashboardWidget.code == code))
        return result.scalar_one_or_none()

    async def existing_codes(self, db: AsyncSession) -> set[str]:
        result = await db.execute(select(DashboardWidget.code))
        return set(result.scalars().all())


class CRUDUserDashboard(CRUDBase[UserDashboard]):

    async def get_by_user(self, db: AsyncSession, *, user_id: uuid.UUID) -> UserDashboard | None:
        result = await db.execute(select(UserDashboard).where(UserDashboard.user_id == user_id))
        return result.scalar_one_or_none()


class CRUDDashboardAlert(CRUDBase[DashboardAlert]):

    async def create_alert(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        type: str,
        category: str,
        title: str,
        message: str,
        severity: str = "info",
        project_id: uuid.UUID | None = None,
    ) -> DashboardAlert:
        alert = DashboardAlert(
            tenant_id=tenant_id,
            user_id=user_id,
            project_id=project_id,
            type=type,
            category=category,
            severity=severity,
            title=title,
            message=message,
        )
        db.add(alert)
        await db.flush()
        return alert

    async def list_for_user(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
        unread_only: bool = False,
        project_id: uuid.UUID | None = None,
        limit: int = 50,
    ) -> list[DashboardAlert]:
        conditions: list[Any] = [
            DashboardAlert.user_id == user_id,
            DashboardAlert.tenant_id == tenant_id,
        ]
        if unread_only:
            conditions.append(DashboardAlert.is_read.is_(False))
        if project_id is not None:
            conditions.append(DashboardAlert.project_id == project_id)
        result = await db.execute(
            select(DashboardAlert)
            .where(*conditions)
            .order_by(DashboardAlert.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_own(
        self,
        db: AsyncSession,
        *,
        alert_id: uuid.UUID,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
    ) -> DashboardAlert | None:
        result = await db.execute(
            select(DashboardAlert).where(
                DashboardAlert.id == alert_id,
                DashboardAlert.user_id == user_id,
                DashboardAlert.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def mark_as_read(self, db: AsyncSession, *, alert: DashboardAlert) -> DashboardAlert:
        if not alert.is_read:
            alert.is_read = True
            alert.read_at = utcnow()
            db.add(alert)
            await db.flush()
            await db.refresh(alert)
        return alert

    async def mark_all_read(
        self, db: AsyncSession, *, user_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> int:
        result = await db.execute(
            update(DashboardAlert)
            .where(
                DashboardAlert.user_id == user_id,
                DashboardAlert.tenant_id == tenant_id,
                DashboardAlert.is_read.is_(False),
            )
            .values(is_read=True, read_at=utcnow())
        )
        return result.rowcount  # type: ignore[return-value]

    async def count_unread(
        self, db: AsyncSession, *, user_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(DashboardAlert)
            .where(
                DashboardAlert.user_id == user_id,
                DashboardAlert.tenant_id == tenant_id,
                DashboardAlert.is_read.is_(False),
            )
        )
        return result.scalar_one()


crud_dashboard_widget = CRUDDashboardWidget(DashboardWidget)
crud_user_dashboard = CRUDUserDashboard(UserDashboard)
crud_dashboard_alert = CRUDDashboardAlert(DashboardAlert)
