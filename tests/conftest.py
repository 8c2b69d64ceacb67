"""
Test configuration and shared fixtures.
Each test gets its own in-memory SQLite database, so tests never share state.
"""
from __future__ import annotations

import os

os.environ["RATE_LIMIT_ENABLED"] = "false"

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402
from typing import Any  # noqa: E402

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import zenamanage.models  # noqa: E402,F401
from zenamanage.db.base import Base  # noqa: E402
from zenamanage.db.session import get_db  # noqa: E402
from zenamanage.main import app  # noqa: E402

# ── Test database ─────────────────────────────────────────────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite://"

DEFAULT_PASSWORD = "TestPass1"

MemberFactory = Callable[..., Awaitable[dict[str, Any]]]


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """A fresh in-memory database with all tables created."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A session for arranging or inspecting data outside of requests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client; every request gets its own committed session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Helpers ───────────────────────────────────────────────────────────────────

async def register_tenant(
    client: AsyncClient,
    *,
    tenant_name: str,
    email: str,
    full_name: str = "Tenant Admin",
    password: str = DEFAULT_PASSWORD,
) -> dict[str, Any]:
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "tenant_name": tenant_name,
            "email": email,
            "password": password,
            "full_name": full_name,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


async def login(client: AsyncClient, email: str, password: str = DEFAULT_PASSWORD) -> dict[str, str]:
    """Log in and return Authorization headers."""
    response = await client.post(
        "/api/v1/auth/login", json={"email": email, "password": password}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


async def create_project(
    client: AsyncClient, headers: dict[str, str], code: str = "PRJ-1", **kwargs: Any
) -> dict[str, Any]:
    payload = {"code": code, "name": f"Project {code}", "status": "active", **kwargs}
    response = await client.post("/api/v1/projects", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def create_task(
    client: AsyncClient,
    headers: dict[str, str],
    project_id: str,
    title: str = "Pour foundation",
    **kwargs: Any,
) -> dict[str, Any]:
    payload = {"project_id": project_id, "title": title, **kwargs}
    response = await client.post("/api/v1/tasks", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def set_task_status(
    client: AsyncClient,
    headers: dict[str, str],
    task_id: str,
    status: str,
    reason: str | None = None,
) -> Any:
    body: dict[str, Any] = {"status": status}
    if reason is not None:
        body["reason"] = reason
    return await client.post(f"/api/v1/tasks/{task_id}/status", json=body, headers=headers)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def tenant_admin(client: AsyncClient) -> dict[str, Any]:
    """Register the primary tenant; its first user is the tenant admin."""
    result = await register_tenant(
        client, tenant_name="Acme Builders", email="admin@acme.example.com", full_name="Alice Admin"
    )
    result["headers"] = await login(client, "admin@acme.example.com")
    return result


@pytest_asyncio.fixture
async def admin_headers(tenant_admin: dict[str, Any]) -> dict[str, str]:
    return tenant_admin["headers"]


@pytest_asyncio.fixture
async def add_member(client: AsyncClient, admin_headers: dict[str, str]) -> MemberFactory:
    """Factory: add a member with a role to the primary tenant and log them in."""

    async def _add(role: str, email: str | None = None, full_name: str | None = None) -> dict[str, Any]:
        email = email or f"{role}@acme.example.com"
        response = await client.post(
            "/api/v1/tenant/members",
            json={
                "email": email,
                "full_name": full_name or role.replace("_", " ").title(),
                "password": DEFAULT_PASSWORD,
                "role": role,
            },
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        member = response.json()
        member["headers"] = await login(client, email)
        return member

    return _add


@pytest_asyncio.fixture
async def other_tenant(client: AsyncClient) -> dict[str, Any]:
    """A second, unrelated tenant."""
    result = await register_tenant(
        client, tenant_name="Globex Construction", email="admin@globex.example.com"
    )
    result["headers"] = await login(client, "admin@globex.example.com")
    return result


@pytest_asyncio.fixture
async def project(client: AsyncClient, admin_headers: dict[str, str]) -> dict[str, Any]:
    return await create_project(client, admin_headers)
