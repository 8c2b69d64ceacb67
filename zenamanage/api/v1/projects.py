"""
Project routes.
CRUD with archiving, overview, progress roll-up and task reordering.
List responses carry ETag / Cache-Control headers for conditional polling.
"""
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status

from zenamanage.core.config import settings
from zenamanage.core.dependencies import DBSession, require_permission
from zenamanage.core.etag import etag_response
from zenamanage.models.user import User
from zenamanage.schemas.pagination import PaginatedResponse
from zenamanage.schemas.project import (
    ProjectCreate,
    ProjectFilter,
    ProjectOverview,
    ProjectRead,
    ProjectStatus,
    ProjectUpdate,
)
from zenamanage.schemas.task import TaskReorder
from zenamanage.services.project_service import project_service
from zenamanage.services.task_service import task_service

router = APIRouter(prefix="/projects", tags=["Projects"])

Viewer = Annotated[User, Depends(require_permission("projects.view"))]


def _project_filter_params(
    status: ProjectStatus | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    size: int = Query(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE),
) -> ProjectFilter:
    return ProjectFilter(status=status, search=search, page=page, size=size)


@router.get(
    "",
    response_model=PaginatedResponse[ProjectRead],
    summary="List projects with filters and pagination",
)
async def list_projects(
    request: Request,
    current_user: Viewer,
    db: DBSession,
    filters: Annotated[ProjectFilter, Depends(_project_filter_params)],
) -> Response:
    projects, total = await project_service.list_projects(
        db, filters=filters, current_user=current_user
    )
    page = PaginatedResponse[ProjectRead](
        items=[ProjectRead.model_validate(p) for p in projects],
        total=total,
        page=filters.page,
        size=filters.size,
    )
    return etag_response(request, page)


@router.post(
    "",
    response_model=ProjectRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
)
async def create_project(
    project_in: ProjectCreate,
    current_user: Annotated[User, Depends(require_permission("projects.create"))],
    db: DBSession,
) -> ProjectRead:
    project = await project_service.create_project(
        db, project_in=project_in, current_user=current_user
    )
    return ProjectRead.model_validate(project)


@router.get("/{project_id}", response_model=ProjectRead, summary="Get a project by ID")
async def get_project(
    project_id: uuid.UUID,
    current_user: Viewer,
    db: DBSession,
) -> ProjectRead:
    project = await project_service.get_project(
        db, project_id=project_id, current_user=current_user
    )
    return ProjectRead.model_validate(project)


@router.patch("/{project_id}", response_model=ProjectRead, summary="Update a project")
async def update_project(
    project_id: uuid.UUID,
    project_in: ProjectUpdate,
    current_user: Annotated[User, Depends(require_permission("projects.update"))],
    db: DBSession,
) -> ProjectRead:
    project = await project_service.update_project(
        db, project_id=project_id, project_in=project_in, current_user=current_user
    )
    return ProjectRead.model_validate(project)


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Archive a project",
)
async def delete_project(
    project_id: uuid.UUID,
    current_user: Annotated[User, Depends(require_permission("projects.delete"))],
    db: DBSession,
) -> None:
    await project_service.archive_project(db, project_id=project_id, current_user=current_user)


@router.get(
    "/{project_id}/overview",
    response_model=ProjectOverview,
    summary="Task, change request and cost summary for a project",
)
async def project_overview(
    project_id: uuid.UUID,
    current_user: Viewer,
    db: DBSession,
) -> ProjectOverview:
    return await project_service.get_overview(
        db, project_id=project_id, current_user=current_user
    )


@router.post(
    "/{project_id}/recalculate-progress",
    response_model=ProjectRead,
    summary="Recompute project progress from its tasks",
)
async def recalculate_progress(
    project_id: uuid.UUID,
    current_user: Annotated[User, Depends(require_permission("projects.update"))],
    db: DBSession,
) -> ProjectRead:
    project = await project_service.recalculate_progress(
        db, project_id=project_id, current_user=current_user
    )
    return ProjectRead.model_validate(project)


@router.post(
    "/{project_id}/tasks/reorder",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Set the board order of a project's tasks",
)
async def reorder_tasks(
    project_id: uuid.UUID,
    body: TaskReorder,
    current_user: Annotated[User, Depends(require_permission("tasks.reorder"))],
    db: DBSession,
) -> None:
    await task_service.reorder_tasks(
        db, project_id=project_id, ordered_ids=body.ordered_ids, current_user=current_user
    )
