"""
Authentication routes.
POST /auth/register, /auth/login, /auth/refresh, /auth/logout
"""
from __future__ import annotations

from fastapi import APIRouter, Request, status

from zenamanage.core.config import settings
from zenamanage.core.dependencies import CurrentUser, DBSession
from zenamanage.core.rate_limit import limiter
from zenamanage.schemas.tenant import RegistrationResult, TenantRead
from zenamanage.schemas.user import (
    LoginRequest,
    RefreshTokenRequest,
    TenantRegister,
    Token,
    UserRead,
)
from zenamanage.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=RegistrationResult,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new tenant and its admin account",
)
async def register(
    data: TenantRegister,
    db: DBSession,
) -> RegistrationResult:
    tenant, user = await auth_service.register_tenant(db, data=data)
    return RegistrationResult(
        tenant=TenantRead.model_validate(tenant),
        user=UserRead.model_validate(user),
    )


@router.post(
    "/login",
    response_model=Token,
    summary="Authenticate and receive JWT token pair",
)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
async def login(
    request: Request,
    credentials: LoginRequest,
    db: DBSession,
) -> Token:
    return await auth_service.authenticate_user(
        db, email=credentials.email, password=credentials.password
    )


@router.post(
    "/refresh",
    response_model=Token,
    summary="Refresh access token using a valid refresh token",
)
async def refresh(
    body: RefreshTokenRequest,
    db: DBSession,
) -> Token:
    return await auth_service.refresh_access_token(
        db, refresh_token=body.refresh_token
    )


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Invalidate the current refresh token",
)
async def logout(
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await auth_service.logout(db, user=current_user)
