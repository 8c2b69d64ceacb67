"""
Project endpoint tests.
Covers: create, code uniqueness, date validation, list filters, ETag caching,
archive, overview and progress roll-up.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest
from httpx import AsyncClient

from conftest import create_project, create_task, set_task_status
from zenamanage.core.config import settings

pytestmark = pytest.mark.asyncio


class TestCreateProject:
    async def test_create_project_success(
        self, client: AsyncClient, tenant_admin: dict[str, Any]
    ) -> None:
        response = await client.post(
            "/api/v1/projects",
            json={
                "code": "TWR-01",
                "name": "Harbour Tower",
                "description": "28-storey residential tower",
                "budget_total": "1250000.00",
                "start_date": "2026-01-05",
                "end_date": "2027-06-30",
            },
            headers=tenant_admin["headers"],
        )
        assert response.status_code == 201
        data = response.json()
        assert data["code"] == "TWR-01"
        assert data["status"] == "planning"
        assert data["progress_percent"] == 0
        assert Decimal(data["budget_total"]) == Decimal("1250000")
        assert data["tenant_id"] == tenant_admin["tenant"]["id"]
        assert data["owner_id"] == tenant_admin["user"]["id"]

    async def test_duplicate_code_in_tenant_conflicts(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        response = await client.post(
            "/api/v1/projects",
            json={"code": project["code"], "name": "Another"},
            headers=admin_headers,
        )
        assert response.status_code == 409

    async def test_same_code_in_other_tenant_is_allowed(
        self,
        client: AsyncClient,
        project: dict[str, Any],
        other_tenant: dict[str, Any],
    ) -> None:
        other = await create_project(client, other_tenant["headers"], code=project["code"])
        assert other["id"] != project["id"]

    async def test_end_before_start_is_rejected(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await client.post(
            "/api/v1/projects",
            json={
                "code": "BAD-DATES",
                "name": "Backwards",
                "start_date": "2026-05-01",
                "end_date": "2026-04-01",
            },
            headers=admin_headers,
        )
        assert response.status_code == 422

    async def test_negative_budget_is_rejected(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await client.post(
            "/api/v1/projects",
            json={"code": "NEG", "name": "Negative", "budget_total": "-1"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    async def test_owner_must_be_tenant_member(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
        other_tenant: dict[str, Any],
    ) -> None:
        response = await client.post(
            "/api/v1/projects",
            json={"code": "OWN", "name": "Foreign owner", "owner_id": other_tenant["user"]["id"]},
            headers=admin_headers,
        )
        assert response.status_code == 422

    async def test_member_cannot_create_project(
        self, client: AsyncClient, add_member: Any
    ) -> None:
        member = await add_member("member")
        response = await client.post(
            "/api/v1/projects",
            json={"code": "NOPE", "name": "Not allowed"},
            headers=member["headers"],
        )
        assert response.status_code == 403

    async def test_project_manager_can_create_project(
        self, client: AsyncClient, add_member: Any
    ) -> None:
        pm = await add_member("project_manager")
        project = await create_project(client, pm["headers"], code="PM-1")
        assert project["owner_id"] == pm["id"]


class TestUpdateProject:
    async def test_update_fields(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        response = await client.patch(
            f"/api/v1/projects/{project['id']}",
            json={"name": "Renamed", "priority": "high", "status": "on_hold"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Renamed"
        assert data["priority"] == "high"
        assert data["status"] == "on_hold"

    @pytest.mark.parametrize("field", ["name", "status", "priority", "budget_total"])
    async def test_null_for_required_field_is_rejected(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
        project: dict[str, Any],
        field: str,
    ) -> None:
        response = await client.patch(
            f"/api/v1/projects/{project['id']}", json={field: None}, headers=admin_headers
        )
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    async def test_null_clears_optional_field(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        project = await create_project(client, admin_headers, code="OPT", description="Temp")
        response = await client.patch(
            f"/api/v1/projects/{project['id']}", json={"description": None}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["description"] is None

    async def test_update_is_audited_as_diff(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        await client.patch(
            f"/api/v1/projects/{project['id']}",
            json={"name": "Renamed", "status": project["status"]},
            headers=admin_headers,
        )
        log = await client.get(
            f"/api/v1/activity/entity/project/{project['id']}", headers=admin_headers
        )
        latest = log.json()["items"][0]
        assert latest["action"] == "project_updated"
        assert latest["meta"] == {"name": {"from": project["name"], "to": "Renamed"}}

    async def test_partial_date_update_checks_stored_dates(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        project = await create_project(
            client, admin_headers, code="DATES", start_date="2026-03-01", end_date="2026-09-01"
        )
        response = await client.patch(
            f"/api/v1/projects/{project['id']}",
            json={"end_date": "2026-02-01"},
            headers=admin_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "UNPROCESSABLE_ENTITY"

    async def test_client_cannot_update(
        self, client: AsyncClient, project: dict[str, Any], add_member: Any
    ) -> None:
        viewer = await add_member("client")
        response = await client.patch(
            f"/api/v1/projects/{project['id']}",
            json={"name": "Hijacked"},
            headers=viewer["headers"],
        )
        assert response.status_code == 403


class TestListProjects:
    async def test_list_with_filters(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        await create_project(client, admin_headers, code="SCH-1", name="Riverside School")
        await create_project(client, admin_headers, code="HSP-1", name="General Hospital")
        await create_project(
            client, admin_headers, code="BRG-1", name="Old Bridge", status="planning"
        )

        response = await client.get("/api/v1/projects", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 3

        response = await client.get(
            "/api/v1/projects", params={"status": "planning"}, headers=admin_headers
        )
        assert [p["code"] for p in response.json()["items"]] == ["BRG-1"]

        response = await client.get(
            "/api/v1/projects", params={"search": "hospital"}, headers=admin_headers
        )
        assert [p["code"] for p in response.json()["items"]] == ["HSP-1"]

    async def test_pagination(self, client: AsyncClient, admin_headers: dict[str, str]) -> None:
        for i in range(5):
            await create_project(client, admin_headers, code=f"PG-{i}")
        response = await client.get(
            "/api/v1/projects", params={"page": 2, "size": 2}, headers=admin_headers
        )
        data = response.json()
        assert data["total"] == 5
        assert data["page"] == 2
        assert data["pages"] == 3
        assert data["has_next"] is True
        assert len(data["items"]) == 2

    async def test_page_size_is_capped(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await client.get(
            "/api/v1/projects",
            params={"size": settings.PAGINATION_MAX_SIZE + 1},
            headers=admin_headers,
        )
        assert response.status_code == 422

        response = await client.get("/api/v1/projects", headers=admin_headers)
        assert response.json()["size"] == settings.PAGINATION_DEFAULT_SIZE

    async def test_list_requires_auth(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/projects")
        assert response.status_code == 401


class TestProjectListCaching:
    async def test_etag_and_not_modified(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        first = await client.get("/api/v1/projects", headers=admin_headers)
        assert first.status_code == 200
        etag = first.headers["etag"]
        assert etag.startswith('"')
        assert "stale-while-revalidate" in first.headers["cache-control"]

        second = await client.get(
            "/api/v1/projects", headers={**admin_headers, "If-None-Match": etag}
        )
        assert second.status_code == 304
        assert second.headers["etag"] == etag
        assert second.content == b""

    async def test_etag_changes_with_data(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        first = await client.get("/api/v1/projects", headers=admin_headers)
        etag = first.headers["etag"]

        await client.patch(
            f"/api/v1/projects/{project['id']}", json={"name": "Changed"}, headers=admin_headers
        )
        second = await client.get(
            "/api/v1/projects", headers={**admin_headers, "If-None-Match": etag}
        )
        assert second.status_code == 200
        assert second.headers["etag"] != etag


class TestArchiveProject:
    async def test_delete_archives(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        response = await client.delete(f"/api/v1/projects/{project['id']}", headers=admin_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/v1/projects/{project['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "archived"

    async def test_archived_project_rejects_new_tasks(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        await client.delete(f"/api/v1/projects/{project['id']}", headers=admin_headers)
        response = await client.post(
            "/api/v1/tasks",
            json={"project_id": project["id"], "title": "Too late"},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["error"] == "project_status_restricted"


class TestOverviewAndProgress:
    async def test_overview_counts(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        await create_task(client, admin_headers, project["id"], title="Excavation")
        await create_task(
            client,
            admin_headers,
            project["id"],
            title="Late survey",
            status="in_progress",
            due_date="2020-01-01T00:00:00Z",
        )
        cr = await client.post(
            "/api/v1/change-requests",
            json={
                "project_id": project["id"],
                "title": "Extra basement level",
                "description": "Client wants a second basement",
                "change_type": "scope",
            },
            headers=admin_headers,
        )
        assert cr.status_code == 201

        response = await client.get(
            f"/api/v1/projects/{project['id']}/overview", headers=admin_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["project"]["id"] == project["id"]
        assert data["tasks_total"] == 2
        assert data["tasks_by_status"] == {"backlog": 1, "in_progress": 1}
        assert data["tasks_overdue"] == 1
        assert data["open_change_requests"] == 1
        assert Decimal(data["approved_cost_impact"]) == Decimal("0")

    async def test_recalculate_progress(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        finished = await create_task(client, admin_headers, project["id"], title="Finished")
        await create_task(client, admin_headers, project["id"], title="Not started")
        dropped = await create_task(client, admin_headers, project["id"], title="Dropped")

        assert (await set_task_status(client, admin_headers, finished["id"], "in_progress")).status_code == 200
        assert (await set_task_status(client, admin_headers, finished["id"], "done")).status_code == 200
        response = await set_task_status(
            client, admin_headers, dropped["id"], "canceled", reason="Descoped"
        )
        assert response.status_code == 200

        response = await client.post(
            f"/api/v1/projects/{project['id']}/recalculate-progress", headers=admin_headers
        )
        assert response.status_code == 200
        # Canceled tasks do not count: (100 + 0) / 2
        assert response.json()["progress_percent"] == 50

    async def test_recalculate_progress_without_tasks(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        response = await client.post(
            f"/api/v1/projects/{project['id']}/recalculate-progress", headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["progress_percent"] == 0
