"""
Task CRUD operations.
Extends CRUDBase with filtering, pagination, ordering and dependency-edge queries.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.crud.base import CRUDBase
from zenamanage.db.base import utcnow
from zenamanage.models.task import Task, TaskDependency
from zenamanage.schemas.pagination import page_offset
from zenamanage.schemas.task import TaskCreate, TaskFilter

OPEN_TASK_STATUSES = ("backlog", "in_progress", "blocked")


def _overdue_conditions(now: datetime) -> list:
    return [
        Task.is_archived.is_(False),
        Task.due_date.is_not(None),
        Task.due_date < now,
        Task.status.in_(OPEN_TASK_STATUSES),
    ]


class CRUDTask(CRUDBase[Task]):

    async def create_task(
        self,
        db: AsyncSession,
        *,
        obj_in: TaskCreate,
        tenant_id: uuid.UUID,
        created_by: uuid.UUID,
        sort_order: int,
    ) -> Task:
        task = Task(
            tenant_id=tenant_id,
            project_id=obj_in.project_id,
            title=obj_in.title,
            description=obj_in.description,
            status=obj_in.status,
            priority=obj_in.priority,
            due_date=obj_in.due_date,
            assignee_id=obj_in.assignee_id,
            created_by=created_by,
            tags=obj_in.tags or [],
            sort_order=sort_order,
        )
        db.add(task)
        await db.flush()
        await db.refresh(task)
        return task

    async def list_with_filters(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        filters: TaskFilter,
    ) -> tuple[list[Task], int]:
        """
        Return (tasks, total) applying all filter criteria.
        Tasks of a single project come back in board order; otherwise newest first.
        """
        conditions = [
            Task.tenant_id == tenant_id,
            Task.is_archived == filters.is_archived,
        ]

        if filters.project_id is not None:
            conditions.append(Task.project_id == filters.project_id)
        if filters.status is not None:
            conditions.append(Task.status == filters.status)
        if filters.priority is not None:
            conditions.append(Task.priority == filters.priority)
        if filters.assignee_id is not None:
            conditions.append(Task.assignee_id == filters.assignee_id)
        if filters.due_before is not None:
            conditions.append(Task.due_date < filters.due_before)

        # Full-text search on title and description
        if filters.search:
            search_term = f"%{filters.search}%"
            conditions.append(
                or_(
                    Task.title.ilike(search_term),
                    Task.description.ilike(search_term),
                )
            )

        total_result = await db.execute(
            select(func.count()).select_from(Task).where(*conditions)
        )
        total = total_result.scalar_one()

        if filters.project_id is not None:
            ordering = (Task.sort_order.asc(), Task.created_at.asc())
        else:
            ordering = (Task.created_at.desc(), Task.id)

        result = await db.execute(
            select(Task)
            .where(*conditions)
            .order_by(*ordering)
            .offset(page_offset(filters.page, filters.size))
            .limit(filters.size)
        )
        return list(result.scalars().all()), total

    async def max_sort_order(self, db: AsyncSession, *, project_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.coalesce(func.max(Task.sort_order), 0)).where(
                Task.project_id == project_id
            )
        )
        return int(result.scalar_one())

    async def get_many_in_project(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        project_id: uuid.UUID,
        task_ids: list[uuid.UUID],
    ) -> list[Task]:
        """Non-archived tasks of a project among the given ids."""
        result = await db.execute(
            select(Task).where(
                Task.tenant_id == tenant_id,
                Task.project_id == project_id,
                Task.is_archived.is_(False),
                Task.id.in_(task_ids),
            )
        )
        return list(result.scalars().all())

    async def archive(self, db: AsyncSession, *, task: Task) -> Task:
        task.is_archived = True
        db.add(task)
        await db.flush()
        await db.refresh(task)
        return task

    async def count_by_status(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        project_id: uuid.UUID | None = None,
    ) -> dict[str, int]:
        """Return a dict mapping status -> count for all non-archived tasks."""
        query = (
            select(Task.status, func.count(Task.id))
            .where(Task.tenant_id == tenant_id, Task.is_archived.is_(False))
            .group_by(Task.status)
        )
        if project_id is not None:
            query = query.where(Task.project_id == project_id)
        result = await db.execute(query)
        return {row[0]: row[1] for row in result.all()}

    async def count_overdue(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        project_id: uuid.UUID | None = None,
    ) -> int:
        query = (
            select(func.count())
            .select_from(Task)
            .where(Task.tenant_id == tenant_id, *_overdue_conditions(utcnow()))
        )
        if project_id is not None:
            query = query.where(Task.project_id == project_id)
        result = await db.execute(query)
        return result.scalar_one()

    async def list_overdue(
        self, db: AsyncSession, *, tenant_id: uuid.UUID, limit: int = 10
    ) -> list[Task]:
        result = await db.execute(
            select(Task)
            .where(Task.tenant_id == tenant_id, *_overdue_conditions(utcnow()))
            .order_by(Task.due_date.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def progress_values(self, db: AsyncSession, *, project_id: uuid.UUID) -> list[int]:
        """Progress of every task that counts toward project progress."""
        result = await db.execute(
            select(Task.progress_percent).where(
                Task.project_id == project_id,
                Task.is_archived.is_(False),
                Task.status != "canceled",
            )
        )
        return list(result.scalars().all())

    # ── Dependencies ──────────────────────────────────────────────────────────

    async def get_dependency(
        self, db: AsyncSession, *, task_id: uuid.UUID, depends_on_id: uuid.UUID
    ) -> TaskDependency | None:
        result = await db.execute(
            select(TaskDependency).where(
                TaskDependency.task_id == task_id,
                TaskDependency.depends_on_id == depends_on_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_dependency(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        task_id: uuid.UUID,
        depends_on_id: uuid.UUID,
    ) -> TaskDependency:
        edge = TaskDependency(
            tenant_id=tenant_id, task_id=task_id, depends_on_id=depends_on_id
        )
        db.add(edge)
        await db.flush()
        return edge

    async def list_dependencies(
        self, db: AsyncSession, *, task_id: uuid.UUID
    ) -> list[tuple[TaskDependency, Task]]:
        """Edges out of a task, each paired with the task it waits on."""
        result = await db.execute(
            select(TaskDependency, Task)
            .join(Task, Task.id == TaskDependency.depends_on_id)
            .where(TaskDependency.task_id == task_id)
            .order_by(TaskDependency.created_at.asc())
        )
        return [(row[0], row[1]) for row in result.all()]

    async def incomplete_dependency_ids(
        self, db: AsyncSession, *, task_id: uuid.UUID
    ) -> list[uuid.UUID]:
        result = await db.execute(
            select(Task.id)
            .join(TaskDependency, Task.id == TaskDependency.depends_on_id)
            .where(TaskDependency.task_id == task_id, Task.status != "done")
        )
        return list(result.scalars().all())

    async def dependency_edges_in_project(
        self, db: AsyncSession, *, project_id: uuid.UUID
    ) -> list[tuple[uuid.UUID, uuid.UUID]]:
        """All (task_id, depends_on_id) edges between tasks of one project."""
        result = await db.execute(
            select(TaskDependency.task_id, TaskDependency.depends_on_id)
            .join(Task, Task.id == TaskDependency.task_id)
            .where(Task.project_id == project_id)
        )
        return [(row[0], row[1]) for row in result.all()]


crud_task = CRUDTask(Task)
