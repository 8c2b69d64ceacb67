"""
Comment routes.
/api/v1/tasks/{task_id}/comments for listing and posting,
/api/v1/comments/{comment_id} for editing and deleting.
"""
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.core.config import settings
from zenamanage.core.dependencies import DBSession, require_permission
from zenamanage.core.exceptions import ForbiddenException, NotFoundException
from zenamanage.core.rbac import FULL_ACCESS_ROLES
from zenamanage.crud.comment import crud_comment
from zenamanage.db.base import utcnow
from zenamanage.models.comment import Comment
from zenamanage.models.user import User
from zenamanage.schemas.comment import CommentCreate, CommentRead, CommentUpdate
from zenamanage.schemas.pagination import PaginatedResponse
from zenamanage.services.activity_service import activity_service
from zenamanage.services.notification_service import notification_service
from zenamanage.services.task_service import task_service

router = APIRouter(tags=["Comments"])

Viewer = Annotated[User, Depends(require_permission("tasks.view"))]


async def _get_own_comment(db: AsyncSession, comment_id: uuid.UUID, user: User) -> Comment:
    comment = await crud_comment.get_in_tenant(db, comment_id, tenant_id=user.tenant_id)
    if comment is None:
        raise NotFoundException("Comment", str(comment_id))
    if comment.author_id != user.id and user.role not in FULL_ACCESS_ROLES:
        raise ForbiddenException("Only the comment author can change this comment")
    return comment


@router.get(
    "/tasks/{task_id}/comments",
    response_model=PaginatedResponse[CommentRead],
    summary="List comments on a task",
)
async def list_comments(
    task_id: uuid.UUID,
    current_user: Viewer,
    db: DBSession,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=50, ge=1, le=settings.PAGINATION_MAX_SIZE),
) -> PaginatedResponse[CommentRead]:
    task = await task_service.get_task(db, task_id=task_id, current_user=current_user)
    comments, total = await crud_comment.list_by_task(
        db, tenant_id=current_user.tenant_id, task_id=task.id, page=page, size=size
    )
    return PaginatedResponse(
        items=[CommentRead.model_validate(c) for c in comments],
        total=total,
        page=page,
        size=size,
    )


@router.post(
    "/tasks/{task_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add a comment to a task",
)
async def create_comment(
    task_id: uuid.UUID,
    comment_in: CommentCreate,
    current_user: Viewer,
    db: DBSession,
) -> CommentRead:
    task = await task_service.get_task(db, task_id=task_id, current_user=current_user)

    comment = await crud_comment.create_comment(
        db,
        tenant_id=current_user.tenant_id,
        content=comment_in.content,
        task_id=task.id,
        author_id=current_user.id,
    )

    # Notify task creator and assignee, never the author
    await notification_service.notify_users(
        db,
        user_ids=[task.created_by, task.assignee_id],
        exclude=current_user.id,
        tenant_id=current_user.tenant_id,
        event_key="task.commented",
        module="tasks",
        title="New comment",
        message=f"{current_user.full_name} commented on task: {task.title!r}",
        project_id=task.project_id,
        entity_type="task",
        entity_id=task.id,
        meta={"comment_id": str(comment.id)},
    )

    await activity_service.log(
        db,
        tenant_id=current_user.tenant_id,
        user_id=current_user.id,
        action="comment_created",
        entity_type="comment",
        entity_id=comment.id,
        meta={"task_id": str(task.id)},
    )
    return CommentRead.model_validate(comment)


@router.patch(
    "/comments/{comment_id}",
    response_model=CommentRead,
    summary="Edit a comment",
)
async def update_comment(
    comment_id: uuid.UUID,
    comment_in: CommentUpdate,
    current_user: Viewer,
    db: DBSession,
) -> CommentRead:
    comment = await _get_own_comment(db, comment_id, current_user)
    updated = await crud_comment.update(
        db, db_obj=comment, obj_in={"content": comment_in.content, "edited_at": utcnow()}
    )
    return CommentRead.model_validate(updated)


@router.delete(
    "/comments/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a comment",
)
async def delete_comment(
    comment_id: uuid.UUID,
    current_user: Viewer,
    db: DBSession,
) -> None:
    comment = await _get_own_comment(db, comment_id, current_user)
    await activity_service.log(
        db,
        tenant_id=current_user.tenant_id,
        user_id=current_user.id,
        action="comment_deleted",
        entity_type="comment",
        entity_id=comment.id,
        meta={"task_id": str(comment.task_id)},
    )
    await crud_comment.remove_obj(db, db_obj=comment)
