"""
Task status workflow tests.
The rule functions are tested directly; the API tests check that rejections
surface with their error codes and that side effects fire.
"""
from __future__ import annotations

import uuid
from typing import Any

import pytest
from httpx import AsyncClient

from conftest import create_project, create_task, set_task_status
from zenamanage.services.task_service import creates_cycle
from zenamanage.services.task_transition_service import (
    ALLOWED_TRANSITIONS,
    allowed_targets,
    calculate_progress,
    validate_transition,
)


# ── Rule functions ────────────────────────────────────────────────────────────

class TestValidateTransition:
    def test_same_status_is_always_allowed(self) -> None:
        result = validate_transition(current="done", target="done", project_status="archived")
        assert result.allowed

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            ("backlog", "in_progress"),
            ("in_progress", "done"),
            ("done", "in_progress"),
            ("canceled", "backlog"),
            ("in_progress", "backlog"),
        ],
    )
    def test_allowed_edges(self, current: str, target: str) -> None:
        result = validate_transition(current=current, target=target, project_status="active")
        assert result.allowed

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            ("backlog", "done"),
            ("backlog", "blocked"),
            ("done", "canceled"),
            ("canceled", "in_progress"),
        ],
    )
    def test_disallowed_edges(self, current: str, target: str) -> None:
        result = validate_transition(
            current=current, target=target, project_status="active", reason="because"
        )
        assert not result.allowed
        assert result.error_code == "invalid_transition"
        assert result.details["allowed_transitions"] == allowed_targets(current)

    @pytest.mark.parametrize("project_status", ["completed", "cancelled", "archived"])
    def test_closed_project_blocks_everything(self, project_status: str) -> None:
        result = validate_transition(
            current="backlog", target="in_progress", project_status=project_status
        )
        assert result.error_code == "project_status_restricted"
        assert result.details == {"project_status": project_status}

    @pytest.mark.parametrize("target", ["blocked", "canceled"])
    def test_reason_required(self, target: str) -> None:
        result = validate_transition(
            current="in_progress", target=target, project_status="active", reason="   "
        )
        assert result.error_code == "reason_required"

        ok = validate_transition(
            current="in_progress", target=target, project_status="active", reason="Rain delay"
        )
        assert ok.allowed

    def test_incomplete_dependencies_block_start(self) -> None:
        dep = uuid.uuid4()
        result = validate_transition(
            current="backlog",
            target="in_progress",
            project_status="active",
            incomplete_dependencies=[dep],
        )
        assert result.error_code == "dependencies_incomplete"
        assert result.details == {"dependencies": [str(dep)]}

    def test_closed_project_wins_over_other_failures(self) -> None:
        result = validate_transition(
            current="backlog", target="done", project_status="archived"
        )
        assert result.error_code == "project_status_restricted"

    def test_every_status_has_an_exit(self) -> None:
        for status, targets in ALLOWED_TRANSITIONS.items():
            assert targets, status
            assert status not in targets


class TestCalculateProgress:
    def test_done_is_complete(self) -> None:
        assert calculate_progress("done", 30) == 100

    @pytest.mark.parametrize("status", ["backlog", "canceled"])
    def test_reset_statuses(self, status: str) -> None:
        assert calculate_progress(status, 70) == 0

    @pytest.mark.parametrize("status", ["in_progress", "blocked"])
    def test_working_statuses_keep_progress(self, status: str) -> None:
        assert calculate_progress(status, 45) == 45


class TestCreatesCycle:
    def test_detects_transitive_cycle(self) -> None:
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        edges = [(a, b), (b, c)]
        assert creates_cycle(edges, task_id=c, depends_on_id=a)

    def test_diamond_is_not_a_cycle(self) -> None:
        a, b, c, d = (uuid.uuid4() for _ in range(4))
        edges = [(a, b), (a, c), (b, d), (c, d)]
        assert not creates_cycle(edges, task_id=a, depends_on_id=d)


# ── API ───────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestStatusEndpoint:
    async def test_full_happy_path(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        task = await create_task(client, admin_headers, project["id"])

        response = await set_task_status(client, admin_headers, task["id"], "in_progress")
        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"

        response = await set_task_status(client, admin_headers, task["id"], "done")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "done"
        assert data["progress_percent"] == 100

    async def test_invalid_transition(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        task = await create_task(client, admin_headers, project["id"])
        response = await set_task_status(client, admin_headers, task["id"], "done")
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "invalid_transition"
        assert body["details"]["allowed_transitions"] == ["canceled", "in_progress"]

    async def test_block_requires_reason(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        task = await create_task(client, admin_headers, project["id"], status="in_progress")
        response = await set_task_status(client, admin_headers, task["id"], "blocked")
        assert response.status_code == 409
        assert response.json()["error"] == "reason_required"

        response = await set_task_status(
            client, admin_headers, task["id"], "blocked", reason="Waiting on permit"
        )
        assert response.status_code == 200
        assert response.json()["status_reason"] == "Waiting on permit"

    async def test_blocked_task_alerts_project_owner(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
        project: dict[str, Any],
        add_member: Any,
    ) -> None:
        worker = await add_member("member")
        task = await create_task(client, worker["headers"], project["id"], status="in_progress")
        response = await set_task_status(
            client, worker["headers"], task["id"], "blocked", reason="Crane broke down"
        )
        assert response.status_code == 200

        alerts = await client.get("/api/v1/dashboard/alerts", headers=admin_headers)
        assert alerts.status_code == 200
        items = alerts.json()
        assert len(items) == 1
        assert items[0]["type"] == "task_blocked"
        assert items[0]["severity"] == "warning"
        assert items[0]["project_id"] == project["id"]

    async def test_dependencies_must_be_done(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        survey = await create_task(client, admin_headers, project["id"], title="Survey")
        dig = await create_task(client, admin_headers, project["id"], title="Dig")
        await client.post(
            f"/api/v1/tasks/{dig['id']}/dependencies",
            json={"depends_on_id": survey["id"]},
            headers=admin_headers,
        )

        response = await set_task_status(client, admin_headers, dig["id"], "in_progress")
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "dependencies_incomplete"
        assert body["details"]["dependencies"] == [survey["id"]]

        await set_task_status(client, admin_headers, survey["id"], "in_progress")
        await set_task_status(client, admin_headers, survey["id"], "done")
        response = await set_task_status(client, admin_headers, dig["id"], "in_progress")
        assert response.status_code == 200

    async def test_closed_project_freezes_tasks(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        project = await create_project(client, admin_headers, code="FRZ")
        task = await create_task(client, admin_headers, project["id"])
        await client.patch(
            f"/api/v1/projects/{project['id']}", json={"status": "completed"}, headers=admin_headers
        )
        response = await set_task_status(client, admin_headers, task["id"], "in_progress")
        assert response.status_code == 409
        assert response.json()["error"] == "project_status_restricted"

    async def test_completion_notifies_creator(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
        project: dict[str, Any],
        add_member: Any,
    ) -> None:
        worker = await add_member("member")
        task = await create_task(client, admin_headers, project["id"], status="in_progress")

        response = await set_task_status(client, worker["headers"], task["id"], "done")
        assert response.status_code == 200

        inbox = await client.get("/api/v1/notifications", headers=admin_headers)
        types = [n["type"] for n in inbox.json()["data"]]
        assert types == ["task.completed"]

    async def test_status_change_is_logged(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        task = await create_task(client, admin_headers, project["id"])
        await set_task_status(client, admin_headers, task["id"], "in_progress")

        response = await client.get(
            f"/api/v1/activity/entity/task/{task['id']}", headers=admin_headers
        )
        assert response.status_code == 200
        actions = [log["action"] for log in response.json()["items"]]
        assert "task_status_changed" in actions
        assert "task_created" in actions

    async def test_unknown_status_is_validation_error(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        task = await create_task(client, admin_headers, project["id"])
        response = await set_task_status(client, admin_headers, task["id"], "paused")
        assert response.status_code == 422
