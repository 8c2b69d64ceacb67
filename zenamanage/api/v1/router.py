"""
Aggregates all v1 API routers into a single APIRouter.
"""
from __future__ import annotations

from fastapi import APIRouter

from zenamanage.api.v1 import (
    activity_logs,
    auth,
    change_requests,
    comments,
    dashboard,
    notifications,
    projects,
    tasks,
    tenant_members,
    users,
    websocket,
)

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(tenant_members.router)
api_router.include_router(projects.router)
api_router.include_router(tasks.router)
api_router.include_router(comments.router)
api_router.include_router(change_requests.router)
api_router.include_router(notifications.router)
api_router.include_router(notifications.rules_router)
api_router.include_router(dashboard.router)
api_router.include_router(activity_logs.router)
api_router.include_router(websocket.router)
