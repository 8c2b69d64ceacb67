"""
Project CRUD operations.
Extends CRUDBase with per-tenant code lookup, filtering and pagination.
"""
from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.crud.base import CRUDBase
from zenamanage.models.project import Project
from zenamanage.schemas.pagination import page_offset
from zenamanage.schemas.project import ProjectCreate, ProjectFilter


class CRUDProject(CRUDBase[Project]):

    async def get_by_code(
        self, db: AsyncSession, *, tenant_id: uuid.UUID, code: str
    ) -> Project | None:
        result = await db.execute(
            select(Project).where(Project.tenant_id == tenant_id, Project.code == code)
        )
        return result.scalar_one_or_none()

    async def create_project(
        self,
        db: AsyncSession,
        *,
        obj_in: ProjectCreate,
        tenant_id: uuid.UUID,
        created_by: uuid.UUID,
    ) -> Project:
        project = Project(
            **obj_in.model_dump(),
            tenant_id=tenant_id,
            created_by=created_by,
        )
        db.add(project)
        await db.flush()
        await db.refresh(project)
        return project

    async def list_with_filters(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        filters: ProjectFilter,
    ) -> tuple[list[Project], int]:
        """Return (projects, total), newest first."""
        conditions = [Project.tenant_id == tenant_id]

        if filters.status is not None:
            conditions.append(Project.status == filters.status)

        if filters.search:
            search_term = f"%{filters.search}%"
            conditions.append(
                or_(
                    Project.name.ilike(search_term),
                    Project.code.ilike(search_term),
                    Project.description.ilike(search_term),
                )
            )

        total_result = await db.execute(
            select(func.count()).select_from(Project).where(*conditions)
        )
        total = total_result.scalar_one()

        result = await db.execute(
            select(Project)
            .where(*conditions)
            .order_by(Project.created_at.desc(), Project.id)
            .offset(page_offset(filters.page, filters.size))
            .limit(filters.size)
        )
        return list(result.scalars().all()), total

    async def count_by_status(self, db: AsyncSession, *, tenant_id: uuid.UUID) -> dict[str, int]:
        result = await db.execute(
            select(Project.status, func.count(Project.id))
            .where(Project.tenant_id == tenant_id)
            .group_by(Project.status)
        )
        return {row[0]: row[1] for row in result.all()}

    async def sum_budget(self, db: AsyncSession, *, tenant_id: uuid.UUID) -> Decimal:
        """Total budget of all projects that are not archived."""
        result = await db.execute(
            select(func.coalesce(func.sum(Project.budget_total), 0)).where(
                Project.tenant_id == tenant_id,
                Project.status != "archived",
            )
        )
        return Decimal(str(result.scalar_one()))

    async def list_recent(
        self, db: AsyncSession, *, tenant_id: uuid.UUID, limit: int = 5
    ) -> list[Project]:
        result = await db.execute(
            select(Project)
            .where(Project.tenant_id == tenant_id, Project.status != "archived")
            .order_by(Project.updated_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


crud_project = CRUDProject(Project)
