"""
Change request routes.
CRUD on drafts plus the submit / approve / reject / revise / apply workflow.
"""
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from zenamanage.core.config import settings
from zenamanage.core.dependencies import DBSession, require_permission
from zenamanage.models.user import User
from zenamanage.schemas.change_request import (
    ChangeRequestApprove,
    ChangeRequestCreate,
    ChangeRequestFilter,
    ChangeRequestRead,
    ChangeRequestReject,
    ChangeRequestStatus,
    ChangeRequestUpdate,
    ChangeType,
)
from zenamanage.schemas.pagination import PaginatedResponse
from zenamanage.services.change_request_service import change_request_service

router = APIRouter(prefix="/change-requests", tags=["Change Requests"])

Viewer = Annotated[User, Depends(require_permission("change_requests.view"))]
Editor = Annotated[User, Depends(require_permission("change_requests.update"))]
Approver = Annotated[User, Depends(require_permission("change_requests.approve"))]


def _cr_filter_params(
    project_id: uuid.UUID | None = Query(default=None),
    status: ChangeRequestStatus | None = Query(default=None),
    change_type: ChangeType | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    size: int = Query(default=settings.PAGINATION_DEFAULT_SIZE, ge=1, le=settings.PAGINATION_MAX_SIZE),
) -> ChangeRequestFilter:
    return ChangeRequestFilter(
        project_id=project_id,
        status=status,
        change_type=change_type,
        search=search,
        page=page,
        size=size,
    )


@router.get(
    "",
    response_model=PaginatedResponse[ChangeRequestRead],
    summary="List change requests",
)
async def list_change_requests(
    current_user: Viewer,
    db: DBSession,
    filters: Annotated[ChangeRequestFilter, Depends(_cr_filter_params)],
) -> PaginatedResponse[ChangeRequestRead]:
    items, total = await change_request_service.list_change_requests(
        db, filters=filters, current_user=current_user
    )
    return PaginatedResponse(
        items=[ChangeRequestRead.model_validate(cr) for cr in items],
        total=total,
        page=filters.page,
        size=filters.size,
    )


@router.post(
    "",
    response_model=ChangeRequestRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft change request",
)
async def create_change_request(
    data: ChangeRequestCreate,
    current_user: Annotated[User, Depends(require_permission("change_requests.create"))],
    db: DBSession,
) -> ChangeRequestRead:
    cr = await change_request_service.create_change_request(
        db, data=data, current_user=current_user
    )
    return ChangeRequestRead.model_validate(cr)


@router.get("/{cr_id}", response_model=ChangeRequestRead, summary="Get a change request")
async def get_change_request(
    cr_id: uuid.UUID,
    current_user: Viewer,
    db: DBSession,
) -> ChangeRequestRead:
    cr = await change_request_service.get_change_request(db, cr_id=cr_id, current_user=current_user)
    return ChangeRequestRead.model_validate(cr)


@router.patch("/{cr_id}", response_model=ChangeRequestRead, summary="Edit a draft")
async def update_change_request(
    cr_id: uuid.UUID,
    data: ChangeRequestUpdate,
    current_user: Editor,
    db: DBSession,
) -> ChangeRequestRead:
    cr = await change_request_service.update_change_request(
        db, cr_id=cr_id, data=data, current_user=current_user
    )
    return ChangeRequestRead.model_validate(cr)


@router.delete(
    "/{cr_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a draft",
)
async def delete_change_request(
    cr_id: uuid.UUID,
    current_user: Editor,
    db: DBSession,
) -> None:
    await change_request_service.delete_change_request(db, cr_id=cr_id, current_user=current_user)


# ── Workflow ──────────────────────────────────────────────────────────────────

@router.post("/{cr_id}/submit", response_model=ChangeRequestRead, summary="Submit for approval")
async def submit_change_request(
    cr_id: uuid.UUID,
    current_user: Annotated[User, Depends(require_permission("change_requests.create"))],
    db: DBSession,
) -> ChangeRequestRead:
    cr = await change_request_service.submit(db, cr_id=cr_id, current_user=current_user)
    return ChangeRequestRead.model_validate(cr)


@router.post("/{cr_id}/approve", response_model=ChangeRequestRead, summary="Approve")
async def approve_change_request(
    cr_id: uuid.UUID,
    current_user: Approver,
    db: DBSession,
    data: ChangeRequestApprove | None = None,
) -> ChangeRequestRead:
    cr = await change_request_service.approve(
        db, cr_id=cr_id, data=data or ChangeRequestApprove(), current_user=current_user
    )
    return ChangeRequestRead.model_validate(cr)


@router.post("/{cr_id}/reject", response_model=ChangeRequestRead, summary="Reject")
async def reject_change_request(
    cr_id: uuid.UUID,
    data: ChangeRequestReject,
    current_user: Approver,
    db: DBSession,
) -> ChangeRequestRead:
    cr = await change_request_service.reject(db, cr_id=cr_id, data=data, current_user=current_user)
    return ChangeRequestRead.model_validate(cr)


@router.post("/{cr_id}/revise", response_model=ChangeRequestRead, summary="Return to draft")
async def revise_change_request(
    cr_id: uuid.UUID,
    current_user: Editor,
    db: DBSession,
) -> ChangeRequestRead:
    cr = await change_request_service.revise(db, cr_id=cr_id, current_user=current_user)
    return ChangeRequestRead.model_validate(cr)


@router.post("/{cr_id}/apply", response_model=ChangeRequestRead, summary="Apply to the project")
async def apply_change_request(
    cr_id: uuid.UUID,
    current_user: Approver,
    db: DBSession,
) -> ChangeRequestRead:
    cr = await change_request_service.apply(db, cr_id=cr_id, current_user=current_user)
    return ChangeRequestRead.model_validate(cr)
