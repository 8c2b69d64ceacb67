"""
User profile routes.
GET/PATCH /users/me, POST /users/me/password
"""
from __future__ import annotations

from fastapi import APIRouter, status

from zenamanage.core.dependencies import CurrentUser, DBSession
from zenamanage.schemas.user import PasswordChange, UserRead, UserUpdate
from zenamanage.services.auth_service import auth_service

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserRead, summary="Get current user profile")
async def get_me(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)


@router.patch("/me", response_model=UserRead, summary="Update current user profile")
async def update_me(
    user_in: UserUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> UserRead:
    updated = await auth_service.update_profile(db, user=current_user, data=user_in)
    return UserRead.model_validate(updated)


@router.post(
    "/me/password",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Change current user password",
)
async def change_password(
    body: PasswordChange,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await auth_service.change_password(db, user=current_user, data=body)
