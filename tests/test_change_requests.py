"""
Change request workflow tests.
Covers: numbering, draft editing, submit/approve/reject/revise/apply, approver
notifications, self-approval guard and state errors.
"""
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import create_project
from zenamanage.models import ChangeRequest
from zenamanage.services.change_request_service import format_change_number

pytestmark = pytest.mark.asyncio


def _payload(project_id: str, **overrides: Any) -> dict[str, Any]:
    return {
        "project_id": project_id,
        "title": "Upgrade facade glazing",
        "description": "Switch to triple glazing on the south facade",
        "change_type": "design",
        "priority": "high",
        "cost_impact": "42000.00",
        "schedule_impact_days": 14,
        **overrides,
    }


async def _create_cr(client: AsyncClient, headers: dict[str, str], project_id: str, **kw: Any) -> dict[str, Any]:
    response = await client.post(
        "/api/v1/change-requests", json=_payload(project_id, **kw), headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _submitted_cr(
    client: AsyncClient, headers: dict[str, str], project_id: str, **kw: Any
) -> dict[str, Any]:
    cr = await _create_cr(client, headers, project_id, **kw)
    response = await client.post(f"/api/v1/change-requests/{cr['id']}/submit", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def test_format_change_number() -> None:
    assert format_change_number("TWR", 7) == "CR-TWR-007"
    assert format_change_number("TWR", 1234) == "CR-TWR-1234"


class TestCreateAndEdit:
    async def test_create_numbers_per_project(
        self, client: AsyncClient, project: dict[str, Any], add_member: Any
    ) -> None:
        designer = await add_member("designer")
        first = await _create_cr(client, designer["headers"], project["id"])
        second = await _create_cr(client, designer["headers"], project["id"], title="Second")

        assert first["status"] == "draft"
        assert first["requested_by"] == designer["id"]
        assert first["change_number"] == f"CR-{project['code']}-001"
        assert second["change_number"] == f"CR-{project['code']}-002"

    async def test_numbering_continues_past_three_digits(
        self,
        client: AsyncClient,
        db: AsyncSession,
        admin_headers: dict[str, str],
        project: dict[str, Any],
    ) -> None:
        first = await _create_cr(client, admin_headers, project["id"])
        await db.execute(
            update(ChangeRequest)
            .where(ChangeRequest.id == uuid.UUID(first["id"]))
            .values(sequence=999)
        )
        await db.commit()

        nxt = await _create_cr(client, admin_headers, project["id"], title="Thousandth")
        assert nxt["change_number"] == f"CR-{project['code']}-1000"

    async def test_member_cannot_create(
        self, client: AsyncClient, project: dict[str, Any], add_member: Any
    ) -> None:
        member = await add_member("member")
        response = await client.post(
            "/api/v1/change-requests", json=_payload(project["id"]), headers=member["headers"]
        )
        assert response.status_code == 403

    async def test_closed_project_rejects_new_requests(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        project = await create_project(client, admin_headers, code="OLD", status="cancelled")
        response = await client.post(
            "/api/v1/change-requests", json=_payload(project["id"]), headers=admin_headers
        )
        assert response.status_code == 409
        assert response.json()["error"] == "project_status_restricted"

    async def test_edit_draft(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        cr = await _create_cr(client, admin_headers, project["id"])
        response = await client.patch(
            f"/api/v1/change-requests/{cr['id']}",
            json={"cost_impact": "50000.00"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert Decimal(response.json()["cost_impact"]) == Decimal("50000")

    @pytest.mark.parametrize("field", ["title", "description", "change_type", "priority"])
    async def test_null_for_required_field_is_rejected(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
        project: dict[str, Any],
        field: str,
    ) -> None:
        cr = await _create_cr(client, admin_headers, project["id"])
        response = await client.patch(
            f"/api/v1/change-requests/{cr['id']}", json={field: None}, headers=admin_headers
        )
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    async def test_cannot_edit_after_submit(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        cr = await _submitted_cr(client, admin_headers, project["id"])
        response = await client.patch(
            f"/api/v1/change-requests/{cr['id']}",
            json={"title": "Sneaky edit"},
            headers=admin_headers,
        )
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "INVALID_STATE"
        assert body["details"] == {"current_status": "awaiting_approval"}

    async def test_delete_draft(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        cr = await _create_cr(client, admin_headers, project["id"])
        response = await client.delete(f"/api/v1/change-requests/{cr['id']}", headers=admin_headers)
        assert response.status_code == 204
        response = await client.get(f"/api/v1/change-requests/{cr['id']}", headers=admin_headers)
        assert response.status_code == 404

    async def test_list_filters(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any]
    ) -> None:
        await _create_cr(client, admin_headers, project["id"], change_type="cost")
        await _submitted_cr(client, admin_headers, project["id"], change_type="schedule")

        response = await client.get(
            "/api/v1/change-requests", params={"status": "draft"}, headers=admin_headers
        )
        assert [cr["change_type"] for cr in response.json()["items"]] == ["cost"]

        response = await client.get(
            "/api/v1/change-requests",
            params={"project_id": project["id"], "change_type": "schedule"},
            headers=admin_headers,
        )
        assert response.json()["total"] == 1


class TestApprovalFlow:
    async def test_submit_notifies_approvers(
        self, client: AsyncClient, project: dict[str, Any], add_member: Any
    ) -> None:
        designer = await add_member("designer")
        pm = await add_member("project_manager")
        await _submitted_cr(client, designer["headers"], project["id"])

        inbox = await client.get("/api/v1/notifications", headers=pm["headers"])
        data = inbox.json()["data"]
        assert [n["type"] for n in data] == ["change_request.submitted"]
        assert data[0]["priority"] == "high"

        alerts = await client.get("/api/v1/dashboard/alerts", headers=pm["headers"])
        assert [a["type"] for a in alerts.json()] == ["change_request_submitted"]

        designer_inbox = await client.get("/api/v1/notifications", headers=designer["headers"])
        assert designer_inbox.json()["meta"]["total"] == 0

    async def test_approve_defaults_to_requested_impact(
        self, client: AsyncClient, project: dict[str, Any], add_member: Any
    ) -> None:
        designer = await add_member("designer")
        pm = await add_member("project_manager")
        cr = await _submitted_cr(client, designer["headers"], project["id"])

        response = await client.post(
            f"/api/v1/change-requests/{cr['id']}/approve", headers=pm["headers"]
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "approved"
        assert data["decided_by"] == pm["id"]
        assert Decimal(data["approved_cost"]) == Decimal("42000")
        assert data["approved_schedule_days"] == 14

        inbox = await client.get("/api/v1/notifications", headers=designer["headers"])
        assert [n["type"] for n in inbox.json()["data"]] == ["change_request.approved"]

    async def test_approve_with_adjusted_values(
        self, client: AsyncClient, project: dict[str, Any], add_member: Any
    ) -> None:
        designer = await add_member("designer")
        pm = await add_member("project_manager")
        cr = await _submitted_cr(client, designer["headers"], project["id"])

        response = await client.post(
            f"/api/v1/change-requests/{cr['id']}/approve",
            json={"comment": "Approved at reduced cost", "approved_cost": "30000.00", "approved_schedule_days": 7},
            headers=pm["headers"],
        )
        data = response.json()
        assert Decimal(data["approved_cost"]) == Decimal("30000")
        assert data["approved_schedule_days"] == 7
        assert data["decision_comment"] == "Approved at reduced cost"

    async def test_cannot_approve_own_request(
        self, client: AsyncClient, project: dict[str, Any], add_member: Any
    ) -> None:
        pm = await add_member("project_manager")
        cr = await _submitted_cr(client, pm["headers"], project["id"])
        response = await client.post(
            f"/api/v1/change-requests/{cr['id']}/approve", headers=pm["headers"]
        )
        assert response.status_code == 403

    async def test_designer_cannot_approve(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
        project: dict[str, Any],
        add_member: Any,
    ) -> None:
        designer = await add_member("designer")
        cr = await _submitted_cr(client, admin_headers, project["id"])
        response = await client.post(
            f"/api/v1/change-requests/{cr['id']}/approve", headers=designer["headers"]
        )
        assert response.status_code == 403

    async def test_cannot_approve_draft(
        self,
        client: AsyncClient,
        project: dict[str, Any],
        add_member: Any,
    ) -> None:
        designer = await add_member("designer")
        pm = await add_member("project_manager")
        cr = await _create_cr(client, designer["headers"], project["id"])
        response = await client.post(
            f"/api/v1/change-requests/{cr['id']}/approve", headers=pm["headers"]
        )
        assert response.status_code == 409
        assert response.json()["error"] == "INVALID_STATE"

    async def test_reject_then_revise(
        self, client: AsyncClient, project: dict[str, Any], add_member: Any
    ) -> None:
        designer = await add_member("designer")
        pm = await add_member("project_manager")
        cr = await _submitted_cr(client, designer["headers"], project["id"])

        no_reason = await client.post(
            f"/api/v1/change-requests/{cr['id']}/reject", json={}, headers=pm["headers"]
        )
        assert no_reason.status_code == 422

        blank_reason = await client.post(
            f"/api/v1/change-requests/{cr['id']}/reject",
            json={"reason": "   "},
            headers=pm["headers"],
        )
        assert blank_reason.status_code == 422

        rejected = await client.post(
            f"/api/v1/change-requests/{cr['id']}/reject",
            json={"reason": "Over budget"},
            headers=pm["headers"],
        )
        assert rejected.status_code == 200
        assert rejected.json()["status"] == "rejected"
        assert rejected.json()["rejection_reason"] == "Over budget"

        revised = await client.post(
            f"/api/v1/change-requests/{cr['id']}/revise", headers=designer["headers"]
        )
        assert revised.status_code == 200
        data = revised.json()
        assert data["status"] == "draft"
        assert data["rejection_reason"] is None
        assert data["decided_by"] is None
        assert data["submitted_at"] is None

        resubmitted = await client.post(
            f"/api/v1/change-requests/{cr['id']}/submit", headers=designer["headers"]
        )
        assert resubmitted.json()["status"] == "awaiting_approval"

    async def test_only_requester_can_revise(
        self, client: AsyncClient, project: dict[str, Any], add_member: Any
    ) -> None:
        designer = await add_member("designer")
        engineer = await add_member("site_engineer")
        pm = await add_member("project_manager")
        cr = await _submitted_cr(client, designer["headers"], project["id"])
        await client.post(
            f"/api/v1/change-requests/{cr['id']}/reject",
            json={"reason": "No"},
            headers=pm["headers"],
        )
        response = await client.post(
            f"/api/v1/change-requests/{cr['id']}/revise", headers=engineer["headers"]
        )
        assert response.status_code == 403


class TestApply:
    async def test_apply_updates_project(
        self, client: AsyncClient, admin_headers: dict[str, str], add_member: Any
    ) -> None:
        project = await create_project(
            client,
            admin_headers,
            code="APL",
            budget_total="100000.00",
            start_date="2026-01-01",
            end_date="2026-06-30",
        )
        designer = await add_member("designer")
        cr = await _submitted_cr(client, designer["headers"], project["id"])
        await client.post(f"/api/v1/change-requests/{cr['id']}/approve", headers=admin_headers)

        response = await client.post(
            f"/api/v1/change-requests/{cr['id']}/apply", headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "applied"
        assert response.json()["applied_at"] is not None

        refreshed = await client.get(f"/api/v1/projects/{project['id']}", headers=admin_headers)
        data = refreshed.json()
        assert Decimal(data["budget_total"]) == Decimal("142000")
        assert data["end_date"] == "2026-07-14"

        overview = await client.get(
            f"/api/v1/projects/{project['id']}/overview", headers=admin_headers
        )
        assert Decimal(overview.json()["approved_cost_impact"]) == Decimal("42000")

    async def test_cannot_apply_twice(
        self, client: AsyncClient, admin_headers: dict[str, str], project: dict[str, Any], add_member: Any
    ) -> None:
        designer = await add_member("designer")
        cr = await _submitted_cr(client, designer["headers"], project["id"])
        await client.post(f"/api/v1/change-requests/{cr['id']}/approve", headers=admin_headers)
        first = await client.post(f"/api/v1/change-requests/{cr['id']}/apply", headers=admin_headers)
        assert first.status_code == 200
        second = await client.post(f"/api/v1/change-requests/{cr['id']}/apply", headers=admin_headers)
        assert second.status_code == 409
