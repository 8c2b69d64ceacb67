"""
Notification routes.
List/read/delete the current user's inbox and manage notification rules.
"""
from __future__ import annotations

import math
import uuid

from fastapi import APIRouter, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.core.config import settings
from zenamanage.core.dependencies import CurrentUser, DBSession
from zenamanage.core.exceptions import NotFoundException, UnprocessableEntityException
from zenamanage.crud.notification import crud_notification, crud_notification_rule
from zenamanage.crud.project import crud_project
from zenamanage.schemas.notification import (
    MarkAllReadResult,
    NotificationFilter,
    NotificationPage,
    NotificationPageMeta,
    NotificationRead,
    NotificationRuleCreate,
    NotificationRuleRead,
    NotificationRuleUpdate,
)
from zenamanage.schemas.pagination import page_offset

router = APIRouter(prefix="/notifications", tags=["Notifications"])
rules_router = APIRouter(prefix="/notification-rules", tags=["Notification Rules"])


@router.get(
    "",
    response_model=NotificationPage,
    summary="Get my notifications",
)
async def list_notifications(
    current_user: CurrentUser,
    db: DBSession,
    is_read: bool | None = Query(default=None),
    module: str | None = Query(default=None, max_length=50),
    search: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE),
) -> NotificationPage:
    filters = NotificationFilter(
        is_read=is_read, module=module, search=search, page=page, per_page=per_page
    )
    notifications, total = await crud_notification.list_by_user(
        db, user_id=current_user.id, tenant_id=current_user.tenant_id, filters=filters
    )
    unread = await crud_notification.count_unread(
        db, user_id=current_user.id, tenant_id=current_user.tenant_id
    )
    first = page_offset(page, per_page) + 1
    return NotificationPage(
        data=[NotificationRead.model_validate(n) for n in notifications],
        meta=NotificationPageMeta(
            current_page=page,
            per_page=per_page,
            total=total,
            last_page=max(1, math.ceil(total / per_page)),
            from_=first if notifications else None,
            to=first + len(notifications) - 1 if notifications else None,
            unread_count=unread,
        ),
    )


@router.put(
    "/read-all",
    response_model=MarkAllReadResult,
    summary="Mark all notifications as read",
)
async def mark_all_read(
    current_user: CurrentUser,
    db: DBSession,
) -> MarkAllReadResult:
    updated = await crud_notification.mark_all_read(
        db, user_id=current_user.id, tenant_id=current_user.tenant_id
    )
    return MarkAllReadResult(updated=updated)


@router.put(
    "/{notification_id}/read",
    response_model=NotificationRead,
    summary="Mark a notification as read",
)
async def mark_read(
    notification_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> NotificationRead:
    notification = await crud_notification.get_own(
        db,
        notification_id=notification_id,
        user_id=current_user.id,
        tenant_id=current_user.tenant_id,
    )
    if notification is None:
        raise NotFoundException("Notification", str(notification_id))
    notification = await crud_notification.mark_as_read(db, notification=notification)
    return NotificationRead.model_validate(notification)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    notification = await crud_notification.get_own(
        db,
        notification_id=notification_id,
        user_id=current_user.id,
        tenant_id=current_user.tenant_id,
    )
    if notification is None:
        raise NotFoundException("Notification", str(notification_id))
    await crud_notification.remove_obj(db, db_obj=notification)


# ── Rules ─────────────────────────────────────────────────────────────────────

async def _check_rule_project(
    db: AsyncSession, project_id: uuid.UUID | None, tenant_id: uuid.UUID
) -> None:
    if project_id is None:
        return
    if await crud_project.get_in_tenant(db, project_id, tenant_id=tenant_id) is None:
        raise UnprocessableEntityException("Rule project must belong to this tenant")


@rules_router.get(
    "",
    response_model=list[NotificationRuleRead],
    summary="List my notification rules",
)
async def list_rules(
    current_user: CurrentUser,
    db: DBSession,
    event_key: str | None = Query(default=None, max_length=100),
) -> list[NotificationRuleRead]:
    rules = await crud_notification_rule.list_by_user(
        db, user_id=current_user.id, tenant_id=current_user.tenant_id, event_key=event_key
    )
    return [NotificationRuleRead.model_validate(r) for r in rules]


@rules_router.post(
    "",
    response_model=NotificationRuleRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a notification rule",
)
async def create_rule(
    data: NotificationRuleCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> NotificationRuleRead:
    await _check_rule_project(db, data.project_id, current_user.tenant_id)
    rule = await crud_notification_rule.create_from_dict(
        db,
        obj_in={
            **data.model_dump(),
            "tenant_id": current_user.tenant_id,
            "user_id": current_user.id,
        },
    )
    return NotificationRuleRead.model_validate(rule)


@rules_router.patch(
    "/{rule_id}",
    response_model=NotificationRuleRead,
    summary="Update a notification rule",
)
async def update_rule(
    rule_id: uuid.UUID,
    data: NotificationRuleUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> NotificationRuleRead:
    rule = await crud_notification_rule.get_own(
        db, rule_id=rule_id, user_id=current_user.id, tenant_id=current_user.tenant_id
    )
    if rule is None:
        raise NotFoundException("Notification rule", str(rule_id))
    await _check_rule_project(db, data.project_id, current_user.tenant_id)
    updated = await crud_notification_rule.update(db, db_obj=rule, obj_in=data)
    return NotificationRuleRead.model_validate(updated)


@rules_router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification rule",
)
async def delete_rule(
    rule_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    rule = await crud_notification_rule.get_own(
        db, rule_id=rule_id, user_id=current_user.id, tenant_id=current_user.tenant_id
    )
    if rule is None:
        raise NotFoundException("Notification rule", str(rule_id))
    await crud_notification_rule.remove_obj(db, db_obj=rule)
