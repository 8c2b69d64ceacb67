"""
Dashboard routes.
Widget catalogue, per-user layout, widget data, metrics and alerts.
Data endpoints carry ETag / Cache-Control headers for conditional polling.
"""
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response

from zenamanage.core.dependencies import DBSession, require_permission
from zenamanage.core.etag import etag_response
from zenamanage.crud.dashboard import crud_dashboard_alert
from zenamanage.models.user import User
from zenamanage.schemas.dashboard import (
    AlertRead,
    AlertsReadAllResult,
    DashboardMetrics,
    DashboardRead,
    LayoutUpdate,
    WidgetAdd,
    WidgetData,
    WidgetRead,
)
from zenamanage.services.dashboard_service import dashboard_service

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

Viewer = Annotated[User, Depends(require_permission("dashboard.view"))]


@router.get("", response_model=DashboardRead, summary="Get my dashboard layout")
async def get_dashboard(current_user: Viewer, db: DBSession) -> DashboardRead:
    dashboard = await dashboard_service.get_dashboard(db, current_user=current_user)
    return DashboardRead.model_validate(dashboard)


@router.put("/layout", response_model=DashboardRead, summary="Save my dashboard layout")
async def update_layout(
    data: LayoutUpdate,
    current_user: Viewer,
    db: DBSession,
) -> DashboardRead:
    dashboard = await dashboard_service.update_layout(db, data=data, current_user=current_user)
    return DashboardRead.model_validate(dashboard)


@router.post("/reset", response_model=DashboardRead, summary="Reset to the role template")
async def reset_dashboard(current_user: Viewer, db: DBSession) -> DashboardRead:
    dashboard = await dashboard_service.reset_dashboard(db, current_user=current_user)
    return DashboardRead.model_validate(dashboard)


# ── Widgets ───────────────────────────────────────────────────────────────────

@router.get(
    "/widgets",
    response_model=list[WidgetRead],
    summary="Widgets available to my role",
)
async def list_widgets(current_user: Viewer, db: DBSession) -> list[WidgetRead]:
    widgets = await dashboard_service.list_widgets(db, current_user=current_user)
    return [WidgetRead.model_validate(w) for w in widgets]


@router.post("/widgets", response_model=DashboardRead, summary="Add a widget to my dashboard")
async def add_widget(
    data: WidgetAdd,
    current_user: Viewer,
    db: DBSession,
) -> DashboardRead:
    dashboard = await dashboard_service.add_widget(db, data=data, current_user=current_user)
    return DashboardRead.model_validate(dashboard)


@router.delete(
    "/widgets/{instance_id}",
    response_model=DashboardRead,
    summary="Remove a widget from my dashboard",
)
async def remove_widget(
    instance_id: str,
    current_user: Viewer,
    db: DBSession,
) -> DashboardRead:
    dashboard = await dashboard_service.remove_widget(
        db, instance_id=instance_id, current_user=current_user
    )
    return DashboardRead.model_validate(dashboard)


@router.get(
    "/widgets/{code}/data",
    response_model=WidgetData,
    summary="Computed data for one widget",
)
async def widget_data(
    code: str,
    request: Request,
    current_user: Viewer,
    db: DBSession,
) -> Response:
    data = await dashboard_service.get_widget_data(db, code=code, current_user=current_user)
    return etag_response(request, WidgetData(widget_code=code, data=data))


@router.get("/metrics", response_model=DashboardMetrics, summary="Tenant KPI summary")
async def metrics(request: Request, current_user: Viewer, db: DBSession) -> Response:
    result = await dashboard_service.get_metrics(db, current_user=current_user)
    return etag_response(request, result)


# ── Alerts ────────────────────────────────────────────────────────────────────

@router.get("/alerts", response_model=list[AlertRead], summary="My dashboard alerts")
async def list_alerts(
    current_user: Viewer,
    db: DBSession,
    unread_only: bool = Query(default=False),
    project_id: uuid.UUID | None = Query(default=None),
) -> list[AlertRead]:
    alerts = await crud_dashboard_alert.list_for_user(
        db,
        user_id=current_user.id,
        tenant_id=current_user.tenant_id,
        unread_only=unread_only,
        project_id=project_id,
    )
    return [AlertRead.model_validate(a) for a in alerts]


@router.put("/alerts/read-all", response_model=AlertsReadAllResult, summary="Mark all alerts read")
async def mark_all_alerts_read(current_user: Viewer, db: DBSession) -> AlertsReadAllResult:
    updated = await crud_dashboard_alert.mark_all_read(
        db, user_id=current_user.id, tenant_id=current_user.tenant_id
    )
    return AlertsReadAllResult(updated=updated)


@router.put("/alerts/{alert_id}/read", response_model=AlertRead, summary="Mark an alert read")
async def mark_alert_read(
    alert_id: uuid.UUID,
    current_user: Viewer,
    db: DBSession,
) -> AlertRead:
    alert = await dashboard_service.mark_alert_read(db, alert_id=alert_id, current_user=current_user)
    return AlertRead.model_validate(alert)
