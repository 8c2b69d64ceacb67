"""
Tenant member management service.
Admins add users to their own tenant and change their role or active flag.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from zenamanage.core.rbac import FULL_ACCESS_ROLES
from zenamanage.core.security import hash_password
from zenamanage.crud.user import crud_user
from zenamanage.models.user import User
from zenamanage.schemas.user import MemberCreate, MemberUpdate
from zenamanage.services.activity_service import activity_service

logger = logging.getLogger(__name__)


class TenantMemberService:

    async def list_members(
        self,
        db: AsyncSession,
        *,
        current_user: User,
        skip: int,
        limit: int,
        include_inactive: bool = True,
    ) -> tuple[list[User], int]:
        return await crud_user.list_members(
            db,
            tenant_id=current_user.tenant_id,
            skip=skip,
            limit=limit,
            include_inactive=include_inactive,
        )

    async def add_member(
        self, db: AsyncSession, *, data: MemberCreate, current_user: User
    ) -> User:
        if data.role == "super_admin":
            raise ForbiddenException("The super_admin role cannot be granted")
        if await crud_user.exists(db, email=data.email):
            raise ConflictException("A user with this email already exists")

        user = await crud_user.create_user(
            db,
            tenant_id=current_user.tenant_id,
            email=data.email,
            hashed_password=hash_password(data.password),
            full_name=data.full_name,
            role=data.role,
        )
        await activity_service.log(
            db,
            tenant_id=current_user.tenant_id,
            user_id=current_user.id,
            action="member_added",
            entity_type="user",
            entity_id=user.id,
            meta={"email": user.email, "role": user.role},
        )
        return user

    async def update_member(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        data: MemberUpdate,
        current_user: User,
    ) -> User:
        """
        Change a member's role and/or active flag.
        Nobody may demote or deactivate themselves, and the tenant always keeps
        at least one active admin; a super_admin does not count as one.
        """
        member = await crud_user.get_in_tenant(db, user_id, tenant_id=current_user.tenant_id)
        if member is None:
            raise NotFoundException("User", str(user_id))

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if changes.get("role") == "super_admin" and member.role != "super_admin":
            raise ForbiddenException("The super_admin role cannot be granted")

        demoting = "role" in changes and changes["role"] not in FULL_ACCESS_ROLES
        deactivating = changes.get("is_active") is False
        if member.id == current_user.id and (demoting or deactivating):
            raise BadRequestException("You cannot demote or deactivate yourself")

        if member.role == "admin" and member.is_active and (demoting or deactivating):
            admins = await crud_user.count_active_admins(db, tenant_id=current_user.tenant_id)
            if admins <= 1:
                raise ConflictException(
                    "The tenant must keep at least one active admin",
                    error_code="LAST_ADMIN",
                )

        if not changes:
            return member

        updated = await crud_user.update(db, db_obj=member, obj_in=changes)
        if deactivating:
            await crud_user.set_refresh_token_hash(db, user=updated, token_hash=None)

        await activity_service.log(
            db,
            tenant_id=current_user.tenant_id,
            user_id=current_user.id,
            action="member_updated",
            entity_type="user",
            entity_id=member.id,
            meta=changes,
        )
        logger.info(
            "Member updated: tenant_id=%s user_id=%s changes=%s",
            current_user.tenant_id,
            member.id,
            changes,
        )
        return updated


tenant_member_service = TenantMemberService()
