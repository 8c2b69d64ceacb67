"""
Generic async CRUD base class.

Every record except tenants themselves carries a ``tenant_id``. Lookups for
request handlers go through the ``*_in_tenant`` helpers so another tenant's
row is indistinguishable from a missing one.
"""
from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    def __init__(self, model: type[ModelType]) -> None:
        self.model = model

    # ── Queries ───────────────────────────────────────────────────────────────

    def scoped(self, tenant_id: uuid.UUID) -> Select[tuple[ModelType]]:
        """SELECT restricted to one tenant, ready for further filters."""
        return select(self.model).where(self.model.tenant_id == tenant_id)  # type: ignore[attr-defined]

    async def get(self, db: AsyncSession, id: uuid.UUID) -> ModelType | None:
        return await db.get(self.model, id)

    async def get_in_tenant(
        self, db: AsyncSession, id: uuid.UUID, *, tenant_id: uuid.UUID
    ) -> ModelType | None:
        result = await db.execute(
            self.scoped(tenant_id).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.scalar_one_or_none()

    async def get_many_in_tenant(
        self, db: AsyncSession, ids: Sequence[uuid.UUID], *, tenant_id: uuid.UUID
    ) -> list[ModelType]:
        """Rows of this tenant among ``ids``; foreign or unknown ids are simply absent."""
        if not ids:
            return []
        result = await db.execute(
            self.scoped(tenant_id).where(self.model.id.in_(ids))  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def exists(self, db: AsyncSession, **filters: Any) -> bool:
        query = select(func.count()).select_from(self.model).filter_by(**filters)
        return (await db.execute(query)).scalar_one() > 0

    # ── Writes ────────────────────────────────────────────────────────────────
    # Writes flush but never commit; the request session commits on success.

    async def _persist(self, db: AsyncSession, db_obj: ModelType) -> ModelType:
        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def create_from_dict(
        self, db: AsyncSession, *, obj_in: dict[str, Any]
    ) -> ModelType:
        return await self._persist(db, self.model(**obj_in))

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: BaseModel | dict[str, Any],
    ) -> ModelType:
        """
        Apply changes to ``db_obj``.
        From a schema only explicitly set fields are written, so PATCH bodies
        can leave columns untouched.
        """
        changes = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(db_obj, field, value)
        return await self._persist(db, db_obj)

    async def remove_obj(self, db: AsyncSession, *, db_obj: ModelType) -> None:
        await db.delete(db_obj)
        await db.flush()
