"""
Task routes.
CRUD + filtering + pagination + assignment, status workflow, dependencies and bulk actions.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status

from zenamanage.core.config import settings
from zenamanage.core.dependencies import DBSession, require_permission
from zenamanage.core.etag import etag_response
from zenamanage.models.user import User
from zenamanage.schemas.pagination import PaginatedResponse
from zenamanage.schemas.task import (
    BulkTaskAction,
    BulkTaskResult,
    TaskAssign,
    TaskCreate,
    TaskDependencyCreate,
    TaskDependencyRead,
    TaskFilter,
    TaskPriority,
    TaskRead,
    TaskStatus,
    TaskStatusChange,
    TaskUpdate,
)
from zenamanage.services.task_service import task_service

router = APIRouter(prefix="/tasks", tags=["Tasks"])

Viewer = Annotated[User, Depends(require_permission("tasks.view"))]
Editor = Annotated[User, Depends(require_permission("tasks.update"))]


def _task_filter_params(
    project_id: uuid.UUID | None = Query(default=None),
    status: TaskStatus | None = Query(default=None),
    priority: TaskPriority | None = Query(default=None),
    assignee_id: uuid.UUID | None = Query(default=None),
    is_archived: bool = Query(default=False),
    due_before: datetime | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    size: int = Query(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE),
) -> TaskFilter:
    return TaskFilter(
        project_id=project_id,
        status=status,
        priority=priority,
        assignee_id=assignee_id,
        is_archived=is_archived,
        due_before=due_before,
        search=search,
        page=page,
        size=size,
    )


@router.get(
    "",
    response_model=PaginatedResponse[TaskRead],
    summary="List tasks with filters and pagination",
)
async def list_tasks(
    request: Request,
    current_user: Viewer,
    db: DBSession,
    filters: Annotated[TaskFilter, Depends(_task_filter_params)],
) -> Response:
    tasks, total = await task_service.list_tasks(
        db, filters=filters, current_user=current_user
    )
    page = PaginatedResponse[TaskRead](
        items=[TaskRead.model_validate(t) for t in tasks],
        total=total,
        page=filters.page,
        size=filters.size,
    )
    return etag_response(request, page)


@router.post(
    "",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new task",
)
async def create_task(
    task_in: TaskCreate,
    current_user: Annotated[User, Depends(require_permission("tasks.create"))],
    db: DBSession,
) -> TaskRead:
    task = await task_service.create_task(db, task_in=task_in, current_user=current_user)
    return TaskRead.model_validate(task)


@router.post(
    "/bulk",
    response_model=BulkTaskResult,
    summary="Archive, assign or re-prioritise many tasks at once",
)
async def bulk_tasks(
    body: BulkTaskAction,
    current_user: Annotated[User, Depends(require_permission("tasks.bulk"))],
    db: DBSession,
) -> BulkTaskResult:
    return await task_service.bulk_action(db, data=body, current_user=current_user)


@router.get(
    "/{task_id}",
    response_model=TaskRead,
    summary="Get a task by ID",
)
async def get_task(
    task_id: uuid.UUID,
    current_user: Viewer,
    db: DBSession,
) -> TaskRead:
    task = await task_service.get_task(db, task_id=task_id, current_user=current_user)
    return TaskRead.model_validate(task)


@router.patch(
    "/{task_id}",
    response_model=TaskRead,
    summary="Update a task",
)
async def update_task(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    current_user: Editor,
    db: DBSession,
) -> TaskRead:
    task = await task_service.update_task(
        db, task_id=task_id, task_in=task_in, current_user=current_user
    )
    return TaskRead.model_validate(task)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Archive (soft-delete) a task",
)
async def delete_task(
    task_id: uuid.UUID,
    current_user: Annotated[User, Depends(require_permission("tasks.delete"))],
    db: DBSession,
) -> None:
    await task_service.delete_task(db, task_id=task_id, current_user=current_user)


@router.post(
    "/{task_id}/assign",
    response_model=TaskRead,
    summary="Assign a task to a user",
)
async def assign_task(
    task_id: uuid.UUID,
    body: TaskAssign,
    current_user: Editor,
    db: DBSession,
) -> TaskRead:
    task = await task_service.assign_task(
        db,
        task_id=task_id,
        assignee_id=body.assignee_id,
        current_user=current_user,
    )
    return TaskRead.model_validate(task)


@router.post(
    "/{task_id}/status",
    response_model=TaskRead,
    summary="Move a task to another workflow status",
)
async def change_status(
    task_id: uuid.UUID,
    body: TaskStatusChange,
    current_user: Editor,
    db: DBSession,
) -> TaskRead:
    task = await task_service.change_status(
        db,
        task_id=task_id,
        new_status=body.status,
        reason=body.reason,
        current_user=current_user,
    )
    return TaskRead.model_validate(task)


# ── Dependencies ──────────────────────────────────────────────────────────────

@router.get(
    "/{task_id}/dependencies",
    response_model=list[TaskDependencyRead],
    summary="List the tasks this task waits on",
)
async def list_dependencies(
    task_id: uuid.UUID,
    current_user: Viewer,
    db: DBSession,
) -> list[TaskDependencyRead]:
    return await task_service.list_dependencies(db, task_id=task_id, current_user=current_user)


@router.post(
    "/{task_id}/dependencies",
    response_model=TaskDependencyRead,
    status_code=status.HTTP_201_CREATED,
    summary="Make this task wait on another task",
)
async def add_dependency(
    task_id: uuid.UUID,
    body: TaskDependencyCreate,
    current_user: Editor,
    db: DBSession,
) -> TaskDependencyRead:
    return await task_service.add_dependency(
        db, task_id=task_id, depends_on_id=body.depends_on_id, current_user=current_user
    )


@router.delete(
    "/{task_id}/dependencies/{depends_on_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a dependency",
)
async def remove_dependency(
    task_id: uuid.UUID,
    depends_on_id: uuid.UUID,
    current_user: Editor,
    db: DBSession,
) -> None:
    await task_service.remove_dependency(
        db, task_id=task_id, depends_on_id=depends_on_id, current_user=current_user
    )
