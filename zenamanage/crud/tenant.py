"""
Tenant CRUD operations.
"""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.crud.base import CRUDBase
from zenamanage.models.tenant import Tenant


class CRUDTenant(CRUDBase[Tenant]):

    async def get_by_slug(self, db: AsyncSession, slug: str) -> Tenant | None:
        result = await db.execute(select(Tenant).where(Tenant.slug == slug))
        return result.scalar_one_or_none()

    async def create_tenant(self, db: AsyncSession, *, name: str, slug: str) -> Tenant:
        tenant = Tenant(name=name, slug=slug)
        db.add(tenant)
        await db.flush()
        await db.refresh(tenant)
        return tenant


crud_tenant = CRUDTenant(Tenant)
