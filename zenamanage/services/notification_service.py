"""
Notification fan-out service.
Resolves each recipient's notification rules into delivery channels, persists
in-app notifications and pushes real-time messages over WebSocket.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.crud.notification import crud_notification, crud_notification_rule
from zenamanage.models.notification import (
    NOTIFICATION_CHANNELS,
    NOTIFICATION_PRIORITIES,
    Notification,
    NotificationRule,
)
from zenamanage.services.websocket_service import ws_manager

logger = logging.getLogger(__name__)

PRIORITY_RANK: dict[str, int] = {name: rank for rank, name in enumerate(NOTIFICATION_PRIORITIES)}
DEFAULT_CHANNELS: frozenset[str] = frozenset(NOTIFICATION_CHANNELS)


def resolve_channels(
    rules: Iterable[NotificationRule],
    *,
    priority: str,
    project_id: uuid.UUID | None,
) -> set[str]:
    """
    Channels an event is delivered on, given the recipient's rules for its key.

    No rules at all means the default channels. Otherwise only enabled rules
    whose project scope and minimum priority match contribute; if none do the
    event is suppressed (empty set).
    """
    rules = list(rules)
    if not rules:
        return set(DEFAULT_CHANNELS)

    event_rank = PRIORITY_RANK.get(priority, PRIORITY_RANK["normal"])
    channels: set[str] = set()
    for rule in rules:
        if not rule.is_enabled:
            continue
        if rule.project_id is not None and rule.project_id != project_id:
            continue
        if event_rank < PRIORITY_RANK.get(rule.min_priority, 0):
            continue
        channels.update(channel for channel in rule.channels or [] if channel in DEFAULT_CHANNELS)
    return channels


class NotificationService:

    async def notify_user(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        event_key: str,
        module: str,
        title: str,
        message: str,
        priority: str = "normal",
        project_id: uuid.UUID | None = None,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        meta: dict[str, Any] | None = None,
    ) -> Notification | None:
        """
        Deliver one event to one user.
        Returns the persisted notification, or None when nothing was stored
        (suppressed by rules, or realtime-only delivery).
        """
        rules = await crud_notification_rule.list_by_user(
            db, user_id=user_id, tenant_id=tenant_id, event_key=event_key
        )
        channels = resolve_channels(rules, priority=priority, project_id=project_id)
        if not channels:
            logger.debug(
                "Notification suppressed by rules: event=%s user_id=%s", event_key, user_id
            )
            return None

        if project_id is not None:
            meta = {**(meta or {}), "project_id": str(project_id)}

        notification: Notification | None = None
        if "inapp" in channels:
            notification = await crud_notification.create_notification(
                db,
                tenant_id=tenant_id,
                user_id=user_id,
                module=module,
                type=event_key,
                title=title,
                message=message,
                priority=priority,
                entity_type=entity_type,
                entity_id=entity_id,
                meta=meta,
            )

        if "realtime" in channels and ws_manager.is_connected(str(user_id)):
            payload: dict[str, Any] = {
                "type": "notification",
                "data": {
                    "id": str(notification.id) if notification else None,
                    "event": event_key,
                    "module": module,
                    "priority": priority,
                    "title": title,
                    "message": message,
                    "entity_type": entity_type,
                    "entity_id": str(entity_id) if entity_id else None,
                    "metadata": meta,
                },
            }
            await ws_manager.send_personal_message(str(user_id), payload)

        return notification

    async def notify_users(
        self,
        db: AsyncSession,
        *,
        user_ids: Iterable[uuid.UUID],
        exclude: uuid.UUID | None = None,
        **kwargs: Any,
    ) -> list[Notification]:
        """Deliver one event to several users, skipping `exclude` and duplicates."""
        delivered: list[Notification] = []
        seen: set[uuid.UUID] = set()
        for user_id in user_ids:
            if user_id is None or user_id == exclude or user_id in seen:
                continue
            seen.add(user_id)
            notification = await self.notify_user(db, user_id=user_id, **kwargs)
            if notification is not None:
                delivered.append(notification)
        return delivered


notification_service = NotificationService()
