"""
Change request workflow service.
Drafts are numbered per project and move draft -> awaiting_approval ->
approved | rejected; rejected requests can be revised back to draft and
approved requests are applied to the project's budget and schedule.
"""
from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
)
from zenamanage.core.rbac import has_permission, roles_with_permission
from zenamanage.crud.change_request import crud_change_request
from zenamanage.crud.project import crud_project
from zenamanage.crud.user import crud_user
from zenamanage.db.base import utcnow
from zenamanage.models.change_request import ChangeRequest
from zenamanage.models.project import Project
from zenamanage.models.user import User
from zenamanage.schemas.change_request import (
    ChangeRequestApprove,
    ChangeRequestCreate,
    ChangeRequestFilter,
    ChangeRequestReject,
    ChangeRequestUpdate,
)
from zenamanage.services.activity_service import activity_service
from zenamanage.services.dashboard_service import dashboard_service
from zenamanage.services.notification_service import notification_service

logger = logging.getLogger(__name__)

# Change request priority -> notification priority
NOTIFICATION_PRIORITY = {"low": "low", "medium": "normal", "high": "high", "urgent": "critical"}


def format_change_number(project_code: str, sequence: int) -> str:
    return f"CR-{project_code}-{sequence:03d}"


class ChangeRequestService:

    async def get_change_request(
        self, db: AsyncSession, *, cr_id: uuid.UUID, current_user: User
    ) -> ChangeRequest:
        cr = await crud_change_request.get_in_tenant(db, cr_id, tenant_id=current_user.tenant_id)
        if cr is None:
            raise NotFoundException("Change request", str(cr_id))
        return cr

    async def list_change_requests(
        self, db: AsyncSession, *, filters: ChangeRequestFilter, current_user: User
    ) -> tuple[list[ChangeRequest], int]:
        return await crud_change_request.list_with_filters(
            db, tenant_id=current_user.tenant_id, filters=filters
        )

    async def create_change_request(
        self, db: AsyncSession, *, data: ChangeRequestCreate, current_user: User
    ) -> ChangeRequest:
        project = await self._get_project(db, project_id=data.project_id, user=current_user)
        if project.is_closed:
            raise ConflictException(
                f"Cannot raise change requests on a {project.status} project",
                error_code="project_status_restricted",
                details={"project_status": project.status},
            )

        sequence = await crud_change_request.next_sequence(db, project_id=project.id)
        cr = await crud_change_request.create_from_dict(
            db,
            obj_in={
                **data.model_dump(),
                "tenant_id": current_user.tenant_id,
                "sequence": sequence,
                "change_number": format_change_number(project.code, sequence),
                "requested_by": current_user.id,
                "status": "draft",
            },
        )
        await self._log(db, cr=cr, user=current_user, action="change_request_created")
        return cr

    async def update_change_request(
        self,
        db: AsyncSession,
        *,
        cr_id: uuid.UUID,
        data: ChangeRequestUpdate,
        current_user: User,
    ) -> ChangeRequest:
        cr = await self.get_change_request(db, cr_id=cr_id, current_user=current_user)
        self._assert_status(cr, "draft", action="edit")
        delta = activity_service.diff(cr, data.model_dump(exclude_unset=True))
        updated = await crud_change_request.update(db, db_obj=cr, obj_in=data)
        await self._log(
            db,
            cr=cr,
            user=current_user,
            action="change_request_updated",
            meta=delta,
        )
        return updated

    async def delete_change_request(
        self, db: AsyncSession, *, cr_id: uuid.UUID, current_user: User
    ) -> None:
        cr = await self.get_change_request(db, cr_id=cr_id, current_user=current_user)
        self._assert_status(cr, "draft", action="delete")
        await self._log(db, cr=cr, user=current_user, action="change_request_deleted")
        await crud_change_request.remove_obj(db, db_obj=cr)

    # ── Workflow ──────────────────────────────────────────────────────────────

    async def submit(
        self, db: AsyncSession, *, cr_id: uuid.UUID, current_user: User
    ) -> ChangeRequest:
        cr = await self.get_change_request(db, cr_id=cr_id, current_user=current_user)
        if cr.requested_by != current_user.id and not has_permission(
            current_user.role, "change_requests.approve"
        ):
            raise ForbiddenException("Only the requester can submit this change request")
        self._assert_status(cr, "draft", action="submit")

        cr = await self._transition(
            db,
            cr=cr,
            user=current_user,
            status="awaiting_approval",
            changes={"submitted_at": utcnow()},
        )

        approver_ids = await crud_user.list_ids_with_roles(
            db,
            tenant_id=current_user.tenant_id,
            roles=roles_with_permission("change_requests.approve"),
        )
        approver_ids = [uid for uid in approver_ids if uid != cr.requested_by]
        await notification_service.notify_users(
            db,
            user_ids=approver_ids,
            exclude=current_user.id,
            tenant_id=current_user.tenant_id,
            event_key="change_request.submitted",
            module="change_requests",
            title=f"Approval needed: {cr.change_number}",
            message=f"{current_user.full_name} submitted {cr.title!r} for approval",
            priority=NOTIFICATION_PRIORITY.get(cr.priority, "normal"),
            project_id=cr.project_id,
            entity_type="change_request",
            entity_id=cr.id,
        )
        await dashboard_service.raise_alert(
            db,
            tenant_id=current_user.tenant_id,
            user_ids=approver_ids,
            type="change_request_submitted",
            category="change_requests",
            severity="info",
            title=f"{cr.change_number} awaiting approval",
            message=cr.title,
            project_id=cr.project_id,
        )
        return cr

    async def approve(
        self,
        db: AsyncSession,
        *,
        cr_id: uuid.UUID,
        data: ChangeRequestApprove,
        current_user: User,
    ) -> ChangeRequest:
        cr = await self.get_change_request(db, cr_id=cr_id, current_user=current_user)
        self._assert_status(cr, "awaiting_approval", action="approve")
        if cr.requested_by == current_user.id:
            raise ForbiddenException("You cannot approve your own change request")

        approved_cost = data.approved_cost if data.approved_cost is not None else cr.cost_impact
        approved_days = (
            data.approved_schedule_days
            if data.approved_schedule_days is not None
            else cr.schedule_impact_days
        )
        cr = await self._transition(
            db,
            cr=cr,
            user=current_user,
            status="approved",
            changes={
                "decided_by": current_user.id,
                "decided_at": utcnow(),
                "decision_comment": data.comment,
                "approved_cost": approved_cost,
                "approved_schedule_days": approved_days,
            },
        )
        await self._notify_requester(db, cr=cr, actor=current_user, event_key="change_request.approved")
        return cr

    async def reject(
        self,
        db: AsyncSession,
        *,
        cr_id: uuid.UUID,
        data: ChangeRequestReject,
        current_user: User,
    ) -> ChangeRequest:
        cr = await self.get_change_request(db, cr_id=cr_id, current_user=current_user)
        self._assert_status(cr, "awaiting_approval", action="reject")
        cr = await self._transition(
            db,
            cr=cr,
            user=current_user,
            status="rejected",
            changes={
                "decided_by": current_user.id,
                "decided_at": utcnow(),
                "decision_comment": data.comment,
                "rejection_reason": data.reason,
            },
        )
        await self._notify_requester(db, cr=cr, actor=current_user, event_key="change_request.rejected")
        return cr

    async def revise(
        self, db: AsyncSession, *, cr_id: uuid.UUID, current_user: User
    ) -> ChangeRequest:
        """Send a rejected request back to draft so the requester can rework it."""
        cr = await self.get_change_request(db, cr_id=cr_id, current_user=current_user)
        if cr.requested_by != current_user.id:
            raise ForbiddenException("Only the requester can revise this change request")
        self._assert_status(cr, "rejected", action="revise")
        return await self._transition(
            db,
            cr=cr,
            user=current_user,
            status="draft",
            changes={
                "submitted_at": None,
                "decided_by": None,
                "decided_at": None,
                "decision_comment": None,
                "rejection_reason": None,
                "approved_cost": None,
                "approved_schedule_days": None,
            },
        )

    async def apply(
        self, db: AsyncSession, *, cr_id: uuid.UUID, current_user: User
    ) -> ChangeRequest:
        """Fold an approved request into the project's budget and end date."""
        cr = await self.get_change_request(db, cr_id=cr_id, current_user=current_user)
        self._assert_status(cr, "approved", action="apply")
        project = await self._get_project(db, project_id=cr.project_id, user=current_user)

        project_changes: dict[str, object] = {}
        if cr.approved_cost:
            project_changes["budget_total"] = (project.budget_total or Decimal("0")) + cr.approved_cost
        if cr.approved_schedule_days and project.end_date is not None:
            project_changes["end_date"] = project.end_date + timedelta(days=cr.approved_schedule_days)
        if project_changes:
            await crud_project.update(db, db_obj=project, obj_in=project_changes)

        cr = await self._transition(
            db, cr=cr, user=current_user, status="applied", changes={"applied_at": utcnow()}
        )
        await self._notify_requester(db, cr=cr, actor=current_user, event_key="change_request.applied")
        return cr

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _get_project(
        self, db: AsyncSession, *, project_id: uuid.UUID, user: User
    ) -> Project:
        project = await crud_project.get_in_tenant(db, project_id, tenant_id=user.tenant_id)
        if project is None:
            raise NotFoundException("Project", str(project_id))
        return project

    @staticmethod
    def _assert_status(cr: ChangeRequest, expected: str, *, action: str) -> None:
        if cr.status != expected:
            raise InvalidStateException(
                f"Cannot {action} a change request in status {cr.status}",
                current_status=cr.status,
            )

    async def _transition(
        self,
        db: AsyncSession,
        *,
        cr: ChangeRequest,
        user: User,
        status: str,
        changes: dict[str, object],
    ) -> ChangeRequest:
        old_status = cr.status
        updated = await crud_change_request.update(
            db, db_obj=cr, obj_in={**changes, "status": status}
        )
        logger.info(
            "Change request %s: %s -> %s by user_id=%s",
            updated.change_number,
            old_status,
            status,
            user.id,
        )
        await self._log(
            db,
            cr=updated,
            user=user,
            action=f"change_request_{status}",
            meta={"from": old_status, "to": status},
        )
        return updated

    async def _notify_requester(
        self, db: AsyncSession, *, cr: ChangeRequest, actor: User, event_key: str
    ) -> None:
        if cr.requested_by == actor.id:
            return
        await notification_service.notify_user(
            db,
            tenant_id=cr.tenant_id,
            user_id=cr.requested_by,
            event_key=event_key,
            module="change_requests",
            title=f"{cr.change_number} {cr.status}",
            message=f"{actor.full_name} marked {cr.title!r} as {cr.status}",
            priority=NOTIFICATION_PRIORITY.get(cr.priority, "normal"),
            project_id=cr.project_id,
            entity_type="change_request",
            entity_id=cr.id,
        )

    async def _log(
        self,
        db: AsyncSession,
        *,
        cr: ChangeRequest,
        user: User,
        action: str,
        meta: dict | None = None,
    ) -> None:
        await activity_service.log(
            db,
            tenant_id=cr.tenant_id,
            user_id=user.id,
            action=action,
            entity_type="change_request",
            entity_id=cr.id,
            meta={"change_number": cr.change_number, **(meta or {})},
        )


change_request_service = ChangeRequestService()
