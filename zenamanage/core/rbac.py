"""
Role-based access control.
Roles are ranked; permissions are granted per role. admin and super_admin hold every permission.
"""
from __future__ import annotations

from typing import Literal

Role = Literal[
    "client",
    "member",
    "designer",
    "site_engineer",
    "project_manager",
    "admin",
    "super_admin",
]

ROLES: tuple[str, ...] = (
    "client",
    "member",
    "designer",
    "site_engineer",
    "project_manager",
    "admin",
    "super_admin",
)

ROLE_RANK: dict[str, int] = {
    "client": 10,
    "member": 20,
    "designer": 30,
    "site_engineer": 40,
    "project_manager": 60,
    "admin": 80,
    "super_admin": 100,
}

DEFAULT_ROLE = "member"

# Roles that bypass the permission matrix entirely
FULL_ACCESS_ROLES = frozenset({"admin", "super_admin"})

_VIEW_PERMISSIONS = frozenset(
    {
        "projects.view",
        "tasks.view",
        "change_requests.view",
        "dashboard.view",
    }
)

_CONTRIBUTOR_PERMISSIONS = _VIEW_PERMISSIONS | {"tasks.create", "tasks.update"}

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "client": _VIEW_PERMISSIONS,
    "member": frozenset(_CONTRIBUTOR_PERMISSIONS),
    "designer": frozenset(
        _CONTRIBUTOR_PERMISSIONS | {"change_requests.create", "change_requests.update"}
    ),
    "site_engineer": frozenset(
        _CONTRIBUTOR_PERMISSIONS | {"change_requests.create", "change_requests.update"}
    ),
    "project_manager": frozenset(
        _CONTRIBUTOR_PERMISSIONS
        | {
            "projects.create",
            "projects.update",
            "projects.delete",
            "tasks.delete",
            "tasks.reorder",
            "tasks.bulk",
            "change_requests.create",
            "change_requests.update",
            "change_requests.approve",
        }
    ),
}


def role_rank(role: str) -> int:
    """Rank of a role; unknown roles rank as the default role."""
    return ROLE_RANK.get(role.lower(), ROLE_RANK[DEFAULT_ROLE])


def has_permission(role: str, permission: str) -> bool:
    if role in FULL_ACCESS_ROLES:
        return True
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def roles_with_permission(permission: str) -> list[str]:
    """All roles that hold a permission, including the full-access roles."""
    granted = [role for role in ROLES if role in FULL_ACCESS_ROLES]
    granted.extend(
        role for role, perms in ROLE_PERMISSIONS.items() if permission in perms
    )
    return granted
