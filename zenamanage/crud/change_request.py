"""
ChangeRequest CRUD operations.
"""
from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.crud.base import CRUDBase
from zenamanage.models.change_request import ChangeRequest
from zenamanage.schemas.change_request import ChangeRequestFilter
from zenamanage.schemas.pagination import page_offset

OPEN_CHANGE_REQUEST_STATUSES = ("draft", "awaiting_approval")
APPROVED_CHANGE_REQUEST_STATUSES = ("approved", "applied")


class CRUDChangeRequest(CRUDBase[ChangeRequest]):

    async def next_sequence(self, db: AsyncSession, *, project_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.coalesce(func.max(ChangeRequest.sequence), 0)).where(
                ChangeRequest.project_id == project_id
            )
        )
        return int(result.scalar_one()) + 1

    async def list_with_filters(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        filters: ChangeRequestFilter,
    ) -> tuple[list[ChangeRequest], int]:
        conditions = [ChangeRequest.tenant_id == tenant_id]

        if filters.project_id is not None:
            conditions.append(ChangeRequest.project_id == filters.project_id)
        if filters.status is not None:
            conditions.append(ChangeRequest.status == filters.status)
        if filters.change_type is not None:
            conditions.append(ChangeRequest.change_type == filters.change_type)
        if filters.search:
            search_term = f"%{filters.search}%"
            conditions.append(
                or_(
                    ChangeRequest.title.ilike(search_term),
                    ChangeRequest.description.ilike(search_term),
                    ChangeRequest.change_number.ilike(search_term),
                )
            )

        total_result = await db.execute(
            select(func.count()).select_from(ChangeRequest).where(*conditions)
        )
        total = total_result.scalar_one()

        result = await db.execute(
            select(ChangeRequest)
            .where(*conditions)
            .order_by(ChangeRequest.created_at.desc(), ChangeRequest.sequence.desc())
            .offset(page_offset(filters.page, filters.size))
            .limit(filters.size)
        )
        return list(result.scalars().all()), total

    async def count_with_statuses(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        statuses: tuple[str, ...],
        project_id: uuid.UUID | None = None,
    ) -> int:
        query = (
            select(func.count())
            .select_from(ChangeRequest)
            .where(ChangeRequest.tenant_id == tenant_id, ChangeRequest.status.in_(statuses))
        )
        if project_id is not None:
            query = query.where(ChangeRequest.project_id == project_id)
        result = await db.execute(query)
        return result.scalar_one()

    async def sum_approved_cost(self, db: AsyncSession, *, project_id: uuid.UUID) -> Decimal:
        result = await db.execute(
            select(func.coalesce(func.sum(ChangeRequest.approved_cost), 0)).where(
                ChangeRequest.project_id == project_id,
                ChangeRequest.status.in_(APPROVED_CHANGE_REQUEST_STATUSES),
            )
        )
        return Decimal(str(result.scalar_one()))

    async def list_recent(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        statuses: tuple[str, ...] = OPEN_CHANGE_REQUEST_STATUSES,
        limit: int = 10,
    ) -> list[ChangeRequest]:
        result = await db.execute(
            select(ChangeRequest)
            .where(ChangeRequest.tenant_id == tenant_id, ChangeRequest.status.in_(statuses))
            .order_by(ChangeRequest.updated_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


crud_change_request = CRUDChangeRequest(ChangeRequest)
