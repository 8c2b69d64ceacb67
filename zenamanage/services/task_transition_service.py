"""
Task status workflow rules.
Pure functions, so the rules can be checked without a database: callers load
the project status and incomplete dependencies and pass them in.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from zenamanage.models.project import CLOSED_PROJECT_STATUSES

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "backlog": frozenset({"in_progress", "canceled"}),
    "in_progress": frozenset({"done", "blocked", "canceled", "backlog"}),
    "blocked": frozenset({"in_progress", "canceled"}),
    "done": frozenset({"in_progress"}),
    "canceled": frozenset({"backlog"}),
}

REASON_REQUIRED_STATUSES = frozenset({"blocked", "canceled"})


@dataclass(frozen=True)
class TransitionResult:
    allowed: bool
    error_code: str | None = None
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


def allowed_targets(current: str) -> list[str]:
    return sorted(ALLOWED_TRANSITIONS.get(current, frozenset()))


def validate_transition(
    *,
    current: str,
    target: str,
    project_status: str,
    reason: str | None = None,
    incomplete_dependencies: list[uuid.UUID] | None = None,
) -> TransitionResult:
    """
    Check a status change. Checks run in a fixed order and the first failure wins:
    closed project, disallowed edge, missing reason, unfinished dependencies.
    Moving to the current status is always allowed.
    """
    if current == target:
        return TransitionResult(allowed=True)

    if project_status in CLOSED_PROJECT_STATUSES:
        return TransitionResult(
            allowed=False,
            error_code="project_status_restricted",
            message=f"Tasks cannot change status while the project is {project_status}",
            details={"project_status": project_status},
        )

    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        return TransitionResult(
            allowed=False,
            error_code="invalid_transition",
            message=f"Cannot move a task from {current} to {target}",
            details={"allowed_transitions": allowed_targets(current)},
        )

    if target in REASON_REQUIRED_STATUSES and not (reason and reason.strip()):
        return TransitionResult(
            allowed=False,
            error_code="reason_required",
            message=f"A reason is required to move a task to {target}",
            details={"status": target},
        )

    if target == "in_progress" and incomplete_dependencies:
        return TransitionResult(
            allowed=False,
            error_code="dependencies_incomplete",
            message="All dependencies must be done before work can start",
            details={"dependencies": [str(dep) for dep in incomplete_dependencies]},
        )

    return TransitionResult(allowed=True)


def calculate_progress(status: str, current_progress: int) -> int:
    """Progress implied by a status: done is complete, backlog and canceled reset."""
    if status == "done":
        return 100
    if status in ("backlog", "canceled"):
        return 0
    return current_progress
