"""
Tenant member routes.
Any member can list colleagues; managing members requires `members.manage`.
"""
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from zenamanage.core.config import settings
from zenamanage.core.dependencies import CurrentUser, DBSession, require_permission
from zenamanage.models.user import User
from zenamanage.schemas.pagination import PaginatedResponse, page_offset
from zenamanage.schemas.user import MemberCreate, MemberUpdate, UserReadPublic
from zenamanage.services.tenant_member_service import tenant_member_service

router = APIRouter(prefix="/tenant/members", tags=["Tenant Members"])

MemberManager = Annotated[User, Depends(require_permission("members.manage"))]


@router.get(
    "",
    response_model=PaginatedResponse[UserReadPublic],
    summary="List members of the current tenant",
)
async def list_members(
    current_user: CurrentUser,
    db: DBSession,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE),
    include_inactive: bool = Query(default=True),
) -> PaginatedResponse[UserReadPublic]:
    users, total = await tenant_member_service.list_members(
        db,
        current_user=current_user,
        skip=page_offset(page, size),
        limit=size,
        include_inactive=include_inactive,
    )
    return PaginatedResponse(
        items=[UserReadPublic.model_validate(u) for u in users],
        total=total,
        page=page,
        size=size,
    )


@router.post(
    "",
    response_model=UserReadPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Add a user to the current tenant",
)
async def add_member(
    data: MemberCreate,
    current_user: MemberManager,
    db: DBSession,
) -> UserReadPublic:
    user = await tenant_member_service.add_member(db, data=data, current_user=current_user)
    return UserReadPublic.model_validate(user)


@router.patch(
    "/{user_id}",
    response_model=UserReadPublic,
    summary="Change a member's role or active flag",
)
async def update_member(
    user_id: uuid.UUID,
    data: MemberUpdate,
    current_user: MemberManager,
    db: DBSession,
) -> UserReadPublic:
    user = await tenant_member_service.update_member(
        db, user_id=user_id, data=data, current_user=current_user
    )
    return UserReadPublic.model_validate(user)
