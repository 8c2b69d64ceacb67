"""
Notification and NotificationRule CRUD operations.
"""
from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.crud.base import CRUDBase
from zenamanage.db.base import utcnow
from zenamanage.models.notification import Notification, NotificationRule
from zenamanage.schemas.notification import NotificationFilter
from zenamanage.schemas.pagination import page_offset


class CRUDNotification(CRUDBase[Notification]):

    async def create_notification(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        module: str,
        type: str,
        title: str,
        message: str,
        priority: str = "normal",
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        meta: dict[str, Any] | None = None,
    ) -> Notification:
        notification = Notification(
            tenant_id=tenant_id,
            user_id=user_id,
            module=module,
            type=type,
            title=title,
            message=message,
            priority=priority,
            entity_type=entity_type,
            entity_id=entity_id,
            meta=meta,
        )
        db.add(notification)
        await db.flush()
        await db.refresh(notification)
        return notification

    async def get_own(
        self,
        db: AsyncSession,
        *,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
    ) -> Notification | None:
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
                Notification.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
        filters: NotificationFilter,
    ) -> tuple[list[Notification], int]:
        conditions = [
            Notification.user_id == user_id,
            Notification.tenant_id == tenant_id,
        ]
        if filters.is_read is not None:
            conditions.append(Notification.is_read.is_(filters.is_read))
        if filters.module:
            conditions.append(Notification.module == filters.module)
        if filters.search:
            search_term = f"%{filters.search}%"
            conditions.append(
                or_(
                    Notification.title.ilike(search_term),
                    Notification.message.ilike(search_term),
                )
            )

        total_result = await db.execute(
            select(func.count()).select_from(Notification).where(*conditions)
        )
        total = total_result.scalar_one()

        result = await db.execute(
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc(), Notification.id)
            .offset(page_offset(filters.page, filters.per_page))
            .limit(filters.per_page)
        )
        return list(result.scalars().all()), total

    async def mark_as_read(self, db: AsyncSession, *, notification: Notification) -> Notification:
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            db.add(notification)
            await db.flush()
            await db.refresh(notification)
        return notification

    async def mark_all_read(
        self, db: AsyncSession, *, user_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> int:
        """Mark all unread notifications for a user as read. Returns count updated."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.tenant_id == tenant_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=utcnow())
        )
        return result.rowcount  # type: ignore[return-value]

    async def count_unread(
        self, db: AsyncSession, *, user_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.tenant_id == tenant_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


class CRUDNotificationRule(CRUDBase[NotificationRule]):
    async def get_own(
        self,
        db: AsyncSession,
        *,
        rule_id: uuid.UUID,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
    ) -> NotificationRule | None:
        result = await db.execute(
            select(NotificationRule).where(
                NotificationRule.id == rule_id,
                NotificationRule.user_id == user_id,
                NotificationRule.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
        event_key: str | None = None,
    ) -> list[NotificationRule]:
        query = select(NotificationRule).where(
            NotificationRule.user_id == user_id,
            NotificationRule.tenant_id == tenant_id,
        )
        if event_key is not None:
            query = query.where(NotificationRule.event_key == event_key)
        result = await db.execute(query.order_by(NotificationRule.created_at.asc()))
        return list(result.scalars().all())


crud_notification = CRUDNotification(Notification)
crud_notification_rule = CRUDNotificationRule(NotificationRule)
