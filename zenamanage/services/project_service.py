"""
Project business logic service.
Enforces per-tenant code uniqueness, date consistency and archiving, and
computes project overviews and rolled-up progress.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.core.exceptions import (
    ConflictException,
    NotFoundException,
    UnprocessableEntityException,
)
from zenamanage.crud.change_request import OPEN_CHANGE_REQUEST_STATUSES, crud_change_request
from zenamanage.crud.project import crud_project
from zenamanage.crud.task import crud_task
from zenamanage.crud.user import crud_user
from zenamanage.models.project import Project
from zenamanage.models.user import User
from zenamanage.schemas.project import (
    ProjectCreate,
    ProjectFilter,
    ProjectOverview,
    ProjectRead,
    ProjectUpdate,
)
from zenamanage.services.activity_service import activity_service

logger = logging.getLogger(__name__)


def average_progress(values: list[int]) -> int:
    """Rounded mean of task progress values; 0 for a project with no tasks."""
    if not values:
        return 0
    return int(round(sum(values) / len(values)))


class ProjectService:

    async def get_project(
        self, db: AsyncSession, *, project_id: uuid.UUID, current_user: User
    ) -> Project:
        """Fetch a project of the user's tenant; other tenants' projects look missing."""
        project = await crud_project.get_in_tenant(
            db, project_id, tenant_id=current_user.tenant_id
        )
        if project is None:
            raise NotFoundException("Project", str(project_id))
        return project

    async def list_projects(
        self, db: AsyncSession, *, filters: ProjectFilter, current_user: User
    ) -> tuple[list[Project], int]:
        return await crud_project.list_with_filters(
            db, tenant_id=current_user.tenant_id, filters=filters
        )

    async def create_project(
        self, db: AsyncSession, *, project_in: ProjectCreate, current_user: User
    ) -> Project:
        tenant_id = current_user.tenant_id
        if await crud_project.get_by_code(db, tenant_id=tenant_id, code=project_in.code):
            raise ConflictException(f"Project code '{project_in.code}' is already in use")

        if project_in.owner_id is None:
            project_in = project_in.model_copy(update={"owner_id": current_user.id})
        else:
            await self._assert_tenant_user(db, user_id=project_in.owner_id, tenant_id=tenant_id)

        project = await crud_project.create_project(
            db, obj_in=project_in, tenant_id=tenant_id, created_by=current_user.id
        )
        await activity_service.log(
            db,
            tenant_id=tenant_id,
            user_id=current_user.id,
            action="project_created",
            entity_type="project",
            entity_id=project.id,
            meta={"code": project.code, "name": project.name},
        )
        logger.info("Project created: tenant_id=%s code=%s", tenant_id, project.code)
        return project

    async def update_project(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        project_in: ProjectUpdate,
        current_user: User,
    ) -> Project:
        project = await self.get_project(db, project_id=project_id, current_user=current_user)
        changes = project_in.model_dump(exclude_unset=True)

        start = changes.get("start_date", project.start_date)
        end = changes.get("end_date", project.end_date)
        if start is not None and end is not None and end < start:
            raise UnprocessableEntityException("end_date must be on or after start_date")

        if changes.get("owner_id") is not None:
            await self._assert_tenant_user(
                db, user_id=changes["owner_id"], tenant_id=current_user.tenant_id
            )

        old_status = project.status
        delta = activity_service.diff(project, changes)
        updated = await crud_project.update(db, db_obj=project, obj_in=changes)

        await activity_service.log(
            db,
            tenant_id=current_user.tenant_id,
            user_id=current_user.id,
            action="project_updated",
            entity_type="project",
            entity_id=project.id,
            meta=delta,
        )
        if updated.status != old_status:
            logger.info(
                "Project status changed: project_id=%s %s -> %s",
                project.id,
                old_status,
                updated.status,
            )
        return updated

    async def archive_project(
        self, db: AsyncSession, *, project_id: uuid.UUID, current_user: User
    ) -> Project:
        project = await self.get_project(db, project_id=project_id, current_user=current_user)
        archived = await crud_project.update(db, db_obj=project, obj_in={"status": "archived"})
        await activity_service.log(
            db,
            tenant_id=current_user.tenant_id,
            user_id=current_user.id,
            action="project_archived",
            entity_type="project",
            entity_id=project.id,
        )
        return archived

    async def get_overview(
        self, db: AsyncSession, *, project_id: uuid.UUID, current_user: User
    ) -> ProjectOverview:
        project = await self.get_project(db, project_id=project_id, current_user=current_user)
        tenant_id = current_user.tenant_id

        by_status = await crud_task.count_by_status(db, tenant_id=tenant_id, project_id=project.id)
        overdue = await crud_task.count_overdue(db, tenant_id=tenant_id, project_id=project.id)
        open_crs = await crud_change_request.count_with_statuses(
            db,
            tenant_id=tenant_id,
            statuses=OPEN_CHANGE_REQUEST_STATUSES,
            project_id=project.id,
        )
        approved_cost = await crud_change_request.sum_approved_cost(db, project_id=project.id)

        return ProjectOverview(
            project=ProjectRead.model_validate(project),
            tasks_by_status=by_status,
            tasks_total=sum(by_status.values()),
            tasks_overdue=overdue,
            open_change_requests=open_crs,
            approved_cost_impact=approved_cost,
        )

    async def recalculate_progress(
        self, db: AsyncSession, *, project_id: uuid.UUID, current_user: User
    ) -> Project:
        project = await self.get_project(db, project_id=project_id, current_user=current_user)
        values = await crud_task.progress_values(db, project_id=project.id)
        progress = average_progress(values)
        if progress != project.progress_percent:
            project = await crud_project.update(
                db, db_obj=project, obj_in={"progress_percent": progress}
            )
        return project

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _assert_tenant_user(
        self, db: AsyncSession, *, user_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> None:
        if await crud_user.get_in_tenant(db, user_id, tenant_id=tenant_id) is None:
            raise UnprocessableEntityException("Owner must be a member of this tenant")


project_service = ProjectService()
