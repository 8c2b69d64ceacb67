"""
FastAPI dependency injection functions.
Provides get_db, get_current_user and require_permission.
"""
from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.core.exceptions import ForbiddenException, InvalidTokenException, UnauthorizedException
from zenamanage.core.rbac import has_permission
from zenamanage.core.security import decode_access_token
from zenamanage.crud.tenant import crud_tenant
from zenamanage.crud.user import crud_user
from zenamanage.db.session import get_db
from zenamanage.models.user import User

# Re-export get_db so routes can import from one place
__all__ = [
    "get_db",
    "get_current_user",
    "ensure_can_authenticate",
    "load_active_user",
    "require_permission",
    "DBSession",
    "CurrentUser",
]

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ] = None,
) -> User:
    """
    Extract and validate the JWT access token from the Authorization header.
    Returns the authenticated User model; the user and its tenant must both be active.
    """
    if credentials is None:
        raise UnauthorizedException("Missing authentication token")

    token = credentials.credentials
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise InvalidTokenException("Invalid or expired access token")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise InvalidTokenException("Malformed token: missing subject")

    try:
        user_id = uuid.UUID(user_id_str)
    except ValueError:
        raise InvalidTokenException("Malformed token: invalid subject format")

    return await load_active_user(db, user_id)


async def ensure_can_authenticate(db: AsyncSession, user: User) -> None:
    """Raise 401 unless both the user and its tenant are active."""
    if not user.is_active:
        raise UnauthorizedException("User account is deactivated")
    tenant = await crud_tenant.get(db, user.tenant_id)
    if tenant is None or not tenant.is_active:
        raise UnauthorizedException("Tenant is inactive")


async def load_active_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await crud_user.get(db, user_id)
    if user is None:
        raise UnauthorizedException("User not found")
    await ensure_can_authenticate(db, user)
    return user


def require_permission(permission: str) -> Callable[..., Awaitable[User]]:
    """Build a dependency that requires the current user's role to hold `permission`."""

    async def _check(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if not has_permission(current_user.role, permission):
            raise ForbiddenException(f"Missing permission: {permission}")
        return current_user

    return _check


# Convenience type aliases for route signatures
DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
