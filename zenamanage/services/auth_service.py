"""
Authentication service.
Handles tenant sign-up, login, token refresh, logout and self-service profile changes.
Business logic lives here; routes only call these methods.
"""
from __future__ import annotations

import logging
import re
import uuid

from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.core.config import settings
from zenamanage.core.dependencies import ensure_can_authenticate, load_active_user
from zenamanage.core.exceptions import (
    BadRequestException,
    ConflictException,
    InvalidTokenException,
    UnauthorizedException,
)
from zenamanage.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    hash_token,
    verify_password,
)
from zenamanage.crud.tenant import crud_tenant
from zenamanage.crud.user import crud_user
from zenamanage.models.tenant import Tenant
from zenamanage.models.user import User
from zenamanage.schemas.user import PasswordChange, TenantRegister, Token, UserUpdate
from zenamanage.services.activity_service import activity_service

logger = logging.getLogger(__name__)

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    slug = _SLUG_INVALID.sub("-", name.lower()).strip("-")
    return slug or "tenant"


class AuthService:

    async def register_tenant(
        self, db: AsyncSession, *, data: TenantRegister
    ) -> tuple[Tenant, User]:
        """
        Create a tenant and its first user, who becomes the tenant admin.
        Tenant slug and user email must both be unused.
        """
        slug = slugify(data.tenant_name)
        if await crud_tenant.get_by_slug(db, slug) is not None:
            raise ConflictException("A tenant with this name already exists")

        if await crud_user.exists(db, email=data.email):
            raise ConflictException("A user with this email already exists")

        tenant = await crud_tenant.create_tenant(db, name=data.tenant_name, slug=slug)
        user = await crud_user.create_user(
            db,
            tenant_id=tenant.id,
            email=data.email,
            hashed_password=hash_password(data.password),
            full_name=data.full_name,
            role="admin",
        )

        await activity_service.log(
            db,
            tenant_id=tenant.id,
            user_id=user.id,
            action="tenant_registered",
            entity_type="tenant",
            entity_id=tenant.id,
            meta={"slug": slug, "email": user.email},
        )
        logger.info("Tenant registered: tenant_id=%s slug=%s", tenant.id, slug)
        return tenant, user

    async def authenticate_user(
        self, db: AsyncSession, *, email: str, password: str
    ) -> Token:
        """
        Verify credentials and issue an access + refresh token pair.
        Stores the refresh token hash in the DB for rotation/revocation.
        """
        user = await crud_user.get_by_email(db, email)
        if user is None or not verify_password(password, user.hashed_password):
            raise UnauthorizedException("Invalid email or password")
        await ensure_can_authenticate(db, user)

        token = await self._issue_tokens(db, user=user)

        await activity_service.log(
            db,
            tenant_id=user.tenant_id,
            user_id=user.id,
            action="user_login",
            entity_type="user",
            entity_id=user.id,
        )
        return token

    async def refresh_access_token(
        self, db: AsyncSession, *, refresh_token: str
    ) -> Token:
        """
        Validate the refresh token, issue a new access token,
        and rotate the refresh token.
        """
        try:
            payload = decode_refresh_token(refresh_token)
        except JWTError:
            raise InvalidTokenException("Invalid or expired refresh token")

        user_id = payload.get("sub")
        if not user_id:
            raise InvalidTokenException("Malformed refresh token")

        try:
            subject = uuid.UUID(user_id)
        except ValueError:
            raise InvalidTokenException("Malformed refresh token")
        user = await load_active_user(db, subject)

        # Validate stored hash
        if user.refresh_token_hash != hash_token(refresh_token):
            raise InvalidTokenException("Refresh token has been revoked")

        return await self._issue_tokens(db, user=user)

    async def logout(
        self, db: AsyncSession, *, user: User
    ) -> None:
        """Invalidate the stored refresh token hash."""
        await crud_user.set_refresh_token_hash(db, user=user, token_hash=None)
        await activity_service.log(
            db,
            tenant_id=user.tenant_id,
            user_id=user.id,
            action="user_logout",
            entity_type="user",
            entity_id=user.id,
        )

    async def update_profile(
        self, db: AsyncSession, *, user: User, data: UserUpdate
    ) -> User:
        updated = await crud_user.update(db, db_obj=user, obj_in=data)
        await activity_service.log(
            db,
            tenant_id=user.tenant_id,
            user_id=user.id,
            action="profile_updated",
            entity_type="user",
            entity_id=user.id,
            meta=data.model_dump(exclude_unset=True),
        )
        return updated

    async def change_password(
        self, db: AsyncSession, *, user: User, data: PasswordChange
    ) -> None:
        """Change the password and revoke outstanding refresh tokens."""
        if not verify_password(data.current_password, user.hashed_password):
            raise BadRequestException("Current password is incorrect")
        if data.current_password == data.new_password:
            raise BadRequestException("New password must differ from current password")
        await crud_user.update(
            db,
            db_obj=user,
            obj_in={
                "hashed_password": hash_password(data.new_password),
                "refresh_token_hash": None,
            },
        )
        await activity_service.log(
            db,
            tenant_id=user.tenant_id,
            user_id=user.id,
            action="password_changed",
            entity_type="user",
            entity_id=user.id,
        )

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _issue_tokens(self, db: AsyncSession, *, user: User) -> Token:
        access_token = create_access_token(str(user.id), user.role, str(user.tenant_id))
        refresh_token = create_refresh_token(str(user.id))
        await crud_user.set_refresh_token_hash(
            db, user=user, token_hash=hash_token(refresh_token)
        )
        return Token(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.access_token_expire_seconds,
        )


auth_service = AuthService()
