"""
Tenant member management tests.
Covers: listing, adding members with roles, role changes, self-demotion and
last-admin guards, permissions.
"""
from __future__ import annotations

import uuid
from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import DEFAULT_PASSWORD
from zenamanage.models import User

pytestmark = pytest.mark.asyncio


class TestAddMember:
    async def test_admin_adds_member(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await client.post(
            "/api/v1/tenant/members",
            json={
                "email": "pm@acme.example.com",
                "full_name": "Pat Manager",
                "password": DEFAULT_PASSWORD,
                "role": "project_manager",
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["role"] == "project_manager"
        assert data["is_active"] is True

    async def test_default_role_is_member(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await client.post(
            "/api/v1/tenant/members",
            json={
                "email": "crew@acme.example.com",
                "full_name": "Crew",
                "password": DEFAULT_PASSWORD,
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["role"] == "member"

    async def test_duplicate_email_conflicts(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await client.post(
            "/api/v1/tenant/members",
            json={
                "email": "admin@acme.example.com",
                "full_name": "Dup",
                "password": DEFAULT_PASSWORD,
            },
            headers=admin_headers,
        )
        assert response.status_code == 409

    async def test_super_admin_cannot_be_granted(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await client.post(
            "/api/v1/tenant/members",
            json={
                "email": "root@acme.example.com",
                "full_name": "Root",
                "password": DEFAULT_PASSWORD,
                "role": "super_admin",
            },
            headers=admin_headers,
        )
        assert response.status_code == 403

    async def test_unknown_role_is_rejected(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await client.post(
            "/api/v1/tenant/members",
            json={
                "email": "x@acme.example.com",
                "full_name": "X",
                "password": DEFAULT_PASSWORD,
                "role": "foreman",
            },
            headers=admin_headers,
        )
        assert response.status_code == 422

    async def test_project_manager_cannot_add_members(
        self, client: AsyncClient, add_member: Any
    ) -> None:
        pm = await add_member("project_manager")
        response = await client.post(
            "/api/v1/tenant/members",
            json={
                "email": "sneaky@acme.example.com",
                "full_name": "Sneaky",
                "password": DEFAULT_PASSWORD,
            },
            headers=pm["headers"],
        )
        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "FORBIDDEN"
        assert "members.manage" in body["detail"]


class TestListMembers:
    async def test_any_member_can_list(
        self, client: AsyncClient, add_member: Any
    ) -> None:
        client_user = await add_member("client")
        response = await client.get("/api/v1/tenant/members", headers=client_user["headers"])
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        emails = {item["email"] for item in data["items"]}
        assert emails == {"admin@acme.example.com", "client@acme.example.com"}

    async def test_other_tenants_are_invisible(
        self, client: AsyncClient, admin_headers: dict[str, str], other_tenant: dict[str, Any]
    ) -> None:
        response = await client.get("/api/v1/tenant/members", headers=admin_headers)
        emails = {item["email"] for item in response.json()["items"]}
        assert "admin@globex.example.com" not in emails


class TestUpdateMember:
    async def test_change_role(
        self, client: AsyncClient, admin_headers: dict[str, str], add_member: Any
    ) -> None:
        member = await add_member("member")
        response = await client.patch(
            f"/api/v1/tenant/members/{member['id']}",
            json={"role": "site_engineer"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["role"] == "site_engineer"

    async def test_admin_cannot_demote_self(
        self, client: AsyncClient, tenant_admin: dict[str, Any]
    ) -> None:
        response = await client.patch(
            f"/api/v1/tenant/members/{tenant_admin['user']['id']}",
            json={"role": "member"},
            headers=tenant_admin["headers"],
        )
        assert response.status_code == 400

    async def test_admin_cannot_deactivate_self(
        self, client: AsyncClient, tenant_admin: dict[str, Any]
    ) -> None:
        response = await client.patch(
            f"/api/v1/tenant/members/{tenant_admin['user']['id']}",
            json={"is_active": False},
            headers=tenant_admin["headers"],
        )
        assert response.status_code == 400

    async def test_second_admin_can_be_demoted(
        self, client: AsyncClient, admin_headers: dict[str, str], add_member: Any
    ) -> None:
        second = await add_member("admin", email="second-admin@acme.example.com")
        response = await client.patch(
            f"/api/v1/tenant/members/{second['id']}",
            json={"role": "project_manager"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["role"] == "project_manager"

    @pytest.mark.parametrize("change", [{"role": "member"}, {"is_active": False}])
    async def test_last_admin_is_kept(
        self,
        client: AsyncClient,
        db: AsyncSession,
        tenant_admin: dict[str, Any],
        add_member: Any,
        change: dict[str, Any],
    ) -> None:
        operator = await add_member("project_manager", email="operator@acme.example.com")
        await db.execute(
            update(User).where(User.id == uuid.UUID(operator["id"])).values(role="super_admin")
        )
        await db.commit()

        response = await client.patch(
            f"/api/v1/tenant/members/{tenant_admin['user']['id']}",
            json=change,
            headers=operator["headers"],
        )
        assert response.status_code == 409
        assert response.json()["error"] == "LAST_ADMIN"

        await add_member("admin", email="backup-admin@acme.example.com")
        response = await client.patch(
            f"/api/v1/tenant/members/{tenant_admin['user']['id']}",
            json=change,
            headers=operator["headers"],
        )
        assert response.status_code == 200

    async def test_member_of_other_tenant_is_not_found(
        self, client: AsyncClient, admin_headers: dict[str, str], other_tenant: dict[str, Any]
    ) -> None:
        response = await client.patch(
            f"/api/v1/tenant/members/{other_tenant['user']['id']}",
            json={"role": "member"},
            headers=admin_headers,
        )
        assert response.status_code == 404
