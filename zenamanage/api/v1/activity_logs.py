"""
Activity log routes.
Every query is scoped to the caller's tenant.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from zenamanage.core.config import settings
from zenamanage.core.dependencies import CurrentUser, DBSession, require_permission
from zenamanage.crud.activity_log import crud_activity_log
from zenamanage.models.activity_log import ActivityLog
from zenamanage.models.user import User
from zenamanage.schemas.activity_log import ActivityLogFilter, ActivityLogRead
from zenamanage.schemas.pagination import PaginatedResponse

router = APIRouter(prefix="/activity", tags=["Activity Logs"])

Auditor = Annotated[User, Depends(require_permission("activity.view_all"))]


def _page(
    logs: list[ActivityLog], total: int, *, page: int, size: int
) -> PaginatedResponse[ActivityLogRead]:
    return PaginatedResponse(
        items=[ActivityLogRead.model_validate(log) for log in logs],
        total=total,
        page=page,
        size=size,
    )


@router.get(
    "",
    response_model=PaginatedResponse[ActivityLogRead],
    summary="Get my activity log",
)
async def my_activity(
    current_user: CurrentUser,
    db: DBSession,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE),
) -> PaginatedResponse[ActivityLogRead]:
    logs, total = await crud_activity_log.list_for_tenant(
        db, tenant_id=current_user.tenant_id, user_id=current_user.id, page=page, size=size
    )
    return _page(logs, total, page=page, size=size)


@router.get(
    "/entity/{entity_type}/{entity_id}",
    response_model=PaginatedResponse[ActivityLogRead],
    summary="Get activity log for a specific record",
)
async def entity_activity(
    entity_type: str,
    entity_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE),
) -> PaginatedResponse[ActivityLogRead]:
    logs, total = await crud_activity_log.list_for_tenant(
        db,
        tenant_id=current_user.tenant_id,
        entity_type=entity_type,
        entity_id=entity_id,
        page=page,
        size=size,
    )
    return _page(logs, total, page=page, size=size)


def _activity_filter_params(
    entity_type: str | None = Query(default=None, max_length=100),
    action: str | None = Query(default=None, max_length=200),
    user_id: uuid.UUID | None = Query(default=None),
    since: datetime | None = Query(default=None),
    until: datetime | None = Query(default=None),
) -> ActivityLogFilter:
    return ActivityLogFilter(
        entity_type=entity_type, action=action, user_id=user_id, since=since, until=until
    )


@router.get(
    "/all",
    response_model=PaginatedResponse[ActivityLogRead],
    summary="Get all activity in my tenant",
)
async def tenant_activity(
    current_user: Auditor,
    db: DBSession,
    filters: Annotated[ActivityLogFilter, Depends(_activity_filter_params)],
    page: int = Query(default=1, ge=1),
    size: int = Query(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE),
) -> PaginatedResponse[ActivityLogRead]:
    logs, total = await crud_activity_log.list_for_tenant(
        db,
        tenant_id=current_user.tenant_id,
        page=page,
        size=size,
        **filters.model_dump(),
    )
    return _page(logs, total, page=page, size=size)
