"""
Dashboard service.
Owns the widget catalogue, role-based widget visibility, per-user layouts,
computed widget data, tenant metrics and dashboard alerts.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.core.exceptions import ForbiddenException, NotFoundException
from zenamanage.core.rbac import ROLE_RANK, role_rank
from zenamanage.crud.activity_log import crud_activity_log
from zenamanage.crud.change_request import crud_change_request
from zenamanage.crud.dashboard import (
    crud_dashboard_alert,
    crud_dashboard_widget,
    crud_user_dashboard,
)
from zenamanage.crud.project import crud_project
from zenamanage.crud.task import crud_task
from zenamanage.models.dashboard import DashboardAlert, DashboardWidget, UserDashboard
from zenamanage.models.user import User
from zenamanage.schemas.dashboard import DashboardMetrics, LayoutUpdate, WidgetAdd

logger = logging.getLogger(__name__)

GRID_COLUMNS = 12

# ── Widget catalogue ──────────────────────────────────────────────────────────
DEFAULT_WIDGETS: list[dict[str, Any]] = [
    {
        "code": "project_overview",
        "name": "Project Overview",
        "type": "card",
        "category": "overview",
        "description": "Projects by status and the most recently active projects.",
        "permissions": None,
        "default_size": {"w": 6, "h": 4},
    },
    {
        "code": "task_status",
        "name": "Task Status",
        "type": "chart",
        "category": "tasks",
        "description": "Open work broken down by task status.",
        "permissions": {"min_role": "member"},
        "default_size": {"w": 6, "h": 4},
    },
    {
        "code": "overdue_tasks",
        "name": "Overdue Tasks",
        "type": "list",
        "category": "tasks",
        "description": "Unfinished tasks past their due date.",
        "permissions": {"min_role": "member"},
        "default_size": {"w": 6, "h": 4},
    },
    {
        "code": "change_requests",
        "name": "Change Requests",
        "type": "list",
        "category": "change_requests",
        "description": "Change requests in draft or awaiting approval.",
        "permissions": {"min_role": "designer"},
        "default_size": {"w": 6, "h": 4},
    },
    {
        "code": "recent_activity",
        "name": "Recent Activity",
        "type": "feed",
        "category": "activity",
        "description": "Latest actions across the tenant.",
        "permissions": {"roles": ["project_manager", "admin", "super_admin"]},
        "default_size": {"w": 12, "h": 3},
    },
]

DEFAULT_LAYOUT: dict[str, Any] = {"columns": GRID_COLUMNS, "row_height": 80}


def _allowed_roles(permissions: Any) -> list[str]:
    if isinstance(permissions, list):
        return [role for role in permissions if isinstance(role, str) and role]
    roles: list[str] = []
    for key in ("roles", "allowed_roles"):
        value = permissions.get(key)
        if isinstance(value, str):
            roles.append(value)
        elif isinstance(value, list):
            roles.extend(role for role in value if isinstance(role, str) and role)
    if isinstance(permissions.get("required_role"), str):
        roles.append(permissions["required_role"])
    return roles


def widget_visible_to_role(permissions: dict[str, Any] | list[str] | None, role: str) -> bool:
    """
    Explicit role lists win; otherwise a `min_role` rank threshold applies;
    widgets with no restriction are visible to everyone.
    """
    if not permissions:
        return True
    roles = _allowed_roles(permissions)
    if roles:
        return role in roles
    if isinstance(permissions, dict) and permissions.get("min_role") in ROLE_RANK:
        return role_rank(role) >= ROLE_RANK[permissions["min_role"]]
    return True


def build_widget_instances(widgets: Iterable[DashboardWidget]) -> list[dict[str, Any]]:
    """Place widgets left to right, wrapping rows on the grid width."""
    instances: list[dict[str, Any]] = []
    x = y = row_height = 0
    for widget in widgets:
        size = dict(widget.default_size or {"w": 6, "h": 4})
        width = min(int(size.get("w", 6)), GRID_COLUMNS)
        if x + width > GRID_COLUMNS:
            x, y, row_height = 0, y + row_height, 0
        instances.append(
            {
                "id": uuid.uuid4().hex,
                "widget_code": widget.code,
                "title": widget.name,
                "size": size,
                "position": {"x": x, "y": y},
                "config": {},
            }
        )
        x += width
        row_height = max(row_height, int(size.get("h", 4)))
    return instances


class DashboardService:

    # ── Catalogue ─────────────────────────────────────────────────────────────

    async def ensure_catalogue(self, db: AsyncSession) -> None:
        """Insert any default widget missing from the catalogue."""
        existing = await crud_dashboard_widget.existing_codes(db)
        missing = [definition for definition in DEFAULT_WIDGETS if definition["code"] not in existing]
        for definition in missing:
            db.add(DashboardWidget(**definition))
        if missing:
            await db.flush()
            logger.info("Seeded %d dashboard widgets", len(missing))

    async def list_widgets(self, db: AsyncSession, *, current_user: User) -> list[DashboardWidget]:
        await self.ensure_catalogue(db)
        widgets = await crud_dashboard_widget.list_active(db)
        return [w for w in widgets if widget_visible_to_role(w.permissions, current_user.role)]

    async def get_visible_widget(
        self, db: AsyncSession, *, code: str, current_user: User
    ) -> DashboardWidget:
        await self.ensure_catalogue(db)
        widget = await crud_dashboard_widget.get_by_code(db, code)
        if widget is None or not widget.is_active:
            raise NotFoundException("Widget", code)
        if not widget_visible_to_role(widget.permissions, current_user.role):
            raise ForbiddenException("This widget is not available for your role")
        return widget

    # ── Layout ────────────────────────────────────────────────────────────────

    async def get_dashboard(self, db: AsyncSession, *, current_user: User) -> UserDashboard:
        """Return the user's dashboard, creating it from the role template on first access."""
        dashboard = await crud_user_dashboard.get_by_user(db, user_id=current_user.id)
        if dashboard is not None:
            return dashboard

        widgets = await self.list_widgets(db, current_user=current_user)
        return await crud_user_dashboard.create_from_dict(
            db,
            obj_in={
                "tenant_id": current_user.tenant_id,
                "user_id": current_user.id,
                "layout": dict(DEFAULT_LAYOUT),
                "widgets": build_widget_instances(widgets),
                "preferences": {"role": current_user.role},
            },
        )

    async def update_layout(
        self, db: AsyncSession, *, data: LayoutUpdate, current_user: User
    ) -> UserDashboard:
        dashboard = await self.get_dashboard(db, current_user=current_user)
        changes: dict[str, Any] = {"layout": data.layout}
        if data.widgets is not None:
            for instance in data.widgets:
                await self.get_visible_widget(
                    db, code=instance.widget_code, current_user=current_user
                )
            changes["widgets"] = [instance.model_dump() for instance in data.widgets]
        if data.preferences is not None:
            changes["preferences"] = data.preferences
        return await crud_user_dashboard.update(db, db_obj=dashboard, obj_in=changes)

    async def add_widget(
        self, db: AsyncSession, *, data: WidgetAdd, current_user: User
    ) -> UserDashboard:
        widget = await self.get_visible_widget(db, code=data.widget_code, current_user=current_user)
        dashboard = await self.get_dashboard(db, current_user=current_user)

        widgets = list(dashboard.widgets or [])
        bottom = max(
            (w.get("position", {}).get("y", 0) + w.get("size", {}).get("h", 4) for w in widgets),
            default=0,
        )
        widgets.append(
            {
                "id": uuid.uuid4().hex,
                "widget_code": widget.code,
                "title": data.title or widget.name,
                "size": data.size or dict(widget.default_size or {"w": 6, "h": 4}),
                "position": data.position or {"x": 0, "y": bottom},
                "config": data.config,
            }
        )
        return await crud_user_dashboard.update(db, db_obj=dashboard, obj_in={"widgets": widgets})

    async def remove_widget(
        self, db: AsyncSession, *, instance_id: str, current_user: User
    ) -> UserDashboard:
        dashboard = await self.get_dashboard(db, current_user=current_user)
        widgets = [w for w in dashboard.widgets or [] if w.get("id") != instance_id]
        if len(widgets) == len(dashboard.widgets or []):
            raise NotFoundException("Dashboard widget", instance_id)
        return await crud_user_dashboard.update(db, db_obj=dashboard, obj_in={"widgets": widgets})

    async def reset_dashboard(self, db: AsyncSession, *, current_user: User) -> UserDashboard:
        dashboard = await self.get_dashboard(db, current_user=current_user)
        widgets = await self.list_widgets(db, current_user=current_user)
        return await crud_user_dashboard.update(
            db,
            db_obj=dashboard,
            obj_in={
                "layout": dict(DEFAULT_LAYOUT),
                "widgets": build_widget_instances(widgets),
                "preferences": {"role": current_user.role},
            },
        )

    # ── Data ──────────────────────────────────────────────────────────────────

    async def get_widget_data(
        self, db: AsyncSession, *, code: str, current_user: User
    ) -> dict[str, Any]:
        widget = await self.get_visible_widget(db, code=code, current_user=current_user)
        tenant_id = current_user.tenant_id

        if widget.code == "project_overview":
            recent = await crud_project.list_recent(db, tenant_id=tenant_id)
            return {
                "projects_by_status": await crud_project.count_by_status(db, tenant_id=tenant_id),
                "recent_projects": [
                    {
                        "id": str(p.id),
                        "code": p.code,
                        "name": p.name,
                        "status": p.status,
                        "progress_percent": p.progress_percent,
                    }
                    for p in recent
                ],
            }

        if widget.code == "task_status":
            by_status = await crud_task.count_by_status(db, tenant_id=tenant_id)
            return {"tasks_by_status": by_status, "total": sum(by_status.values())}

        if widget.code == "overdue_tasks":
            tasks = await crud_task.list_overdue(db, tenant_id=tenant_id)
            return {
                "count": await crud_task.count_overdue(db, tenant_id=tenant_id),
                "tasks": [
                    {
                        "id": str(t.id),
                        "title": t.title,
                        "project_id": str(t.project_id),
                        "assignee_id": str(t.assignee_id) if t.assignee_id else None,
                        "status": t.status,
                        "due_date": t.due_date.isoformat() if t.due_date else None,
                    }
                    for t in tasks
                ],
            }

        if widget.code == "change_requests":
            items = await crud_change_request.list_recent(db, tenant_id=tenant_id)
            return {
                "awaiting_approval": await crud_change_request.count_with_statuses(
                    db, tenant_id=tenant_id, statuses=("awaiting_approval",)
                ),
                "draft": await crud_change_request.count_with_statuses(
                    db, tenant_id=tenant_id, statuses=("draft",)
                ),
                "items": [
                    {
                        "id": str(cr.id),
                        "change_number": cr.change_number,
                        "title": cr.title,
                        "status": cr.status,
                        "priority": cr.priority,
                    }
                    for cr in items
                ],
            }

        if widget.code == "recent_activity":
            logs = await crud_activity_log.recent(db, tenant_id=tenant_id, limit=20)
            return {
                "items": [
                    {
                        "action": log.action,
                        "entity_type": log.entity_type,
                        "entity_id": str(log.entity_id),
                        "user_id": str(log.user_id),
                        "created_at": log.created_at.isoformat(),
                    }
                    for log in logs
                ]
            }

        return {}

    async def get_metrics(self, db: AsyncSession, *, current_user: User) -> DashboardMetrics:
        tenant_id = current_user.tenant_id
        projects_by_status = await crud_project.count_by_status(db, tenant_id=tenant_id)
        tasks_by_status = await crud_task.count_by_status(db, tenant_id=tenant_id)
        return DashboardMetrics(
            projects_active=projects_by_status.get("active", 0),
            projects_total=sum(projects_by_status.values()),
            tasks_total=sum(tasks_by_status.values()),
            tasks_overdue=await crud_task.count_overdue(db, tenant_id=tenant_id),
            change_requests_pending=await crud_change_request.count_with_statuses(
                db, tenant_id=tenant_id, statuses=("awaiting_approval",)
            ),
            budget_total=await crud_project.sum_budget(db, tenant_id=tenant_id),
        )

    # ── Alerts ────────────────────────────────────────────────────────────────

    async def raise_alert(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        user_ids: Iterable[uuid.UUID | None],
        type: str,
        category: str,
        title: str,
        message: str,
        severity: str = "info",
        project_id: uuid.UUID | None = None,
    ) -> list[DashboardAlert]:
        alerts: list[DashboardAlert] = []
        for user_id in dict.fromkeys(uid for uid in user_ids if uid is not None):
            alerts.append(
                await crud_dashboard_alert.create_alert(
                    db,
                    tenant_id=tenant_id,
                    user_id=user_id,
                    project_id=project_id,
                    type=type,
                    category=category,
                    severity=severity,
                    title=title,
                    message=message,
                )
            )
        return alerts

    async def mark_alert_read(
        self, db: AsyncSession, *, alert_id: uuid.UUID, current_user: User
    ) -> DashboardAlert:
        alert = await crud_dashboard_alert.get_own(
            db, alert_id=alert_id, user_id=current_user.id, tenant_id=current_user.tenant_id
        )
        if alert is None:
            raise NotFoundException("Alert", str(alert_id))
        return await crud_dashboard_alert.mark_as_read(db, alert=alert)


dashboard_service = DashboardService()
