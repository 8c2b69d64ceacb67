"""
User CRUD operations.
Extends CRUDBase with login lookups and tenant member queries.
"""
from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.crud.base import CRUDBase
from zenamanage.models.user import User


class CRUDUser(CRUDBase[User]):

    async def get_by_email(self, db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    async def create_user(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        email: str,
        hashed_password: str,
        full_name: str,
        role: str = "member",
    ) -> User:
        user = User(
            tenant_id=tenant_id,
            email=email,
            hashed_password=hashed_password,
            full_name=full_name,
            role=role,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    async def set_refresh_token_hash(
        self, db: AsyncSession, *, user: User, token_hash: str | None
    ) -> User:
        user.refresh_token_hash = token_hash
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    async def list_members(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        skip: int = 0,
        limit: int = 100,
        include_inactive: bool = True,
    ) -> tuple[list[User], int]:
        query = select(User).where(User.tenant_id == tenant_id)
        count_query = select(func.count()).select_from(User).where(User.tenant_id == tenant_id)

        if not include_inactive:
            query = query.where(User.is_active.is_(True))
            count_query = count_query.where(User.is_active.is_(True))

        total_result = await db.execute(count_query)
        total = total_result.scalar_one()

        result = await db.execute(
            query.order_by(User.created_at.asc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_ids_with_roles(
        self, db: AsyncSession, *, tenant_id: uuid.UUID, roles: list[str]
    ) -> list[uuid.UUID]:
        """Ids of active tenant users holding any of the given roles."""
        result = await db.execute(
            select(User.id).where(
                User.tenant_id == tenant_id,
                User.role.in_(roles),
                User.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def count_active_admins(self, db: AsyncSession, *, tenant_id: uuid.UUID) -> int:
        """Active tenant admins. super_admin is a platform role and does not count."""
        result = await db.execute(
            select(func.count())
            .select_from(User)
            .where(
                User.tenant_id == tenant_id,
                User.role == "admin",
                User.is_active.is_(True),
            )
        )
        return result.scalar_one()


crud_user = CRUDUser(User)
