"""
WebSocket tests.
Covers: the connection manager fan-out, the authenticated endpoint handshake
and realtime delivery of notifications.
"""
from __future__ import annotations

import json
import uuid
from collections.abc import AsyncGenerator, Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient
from httpx import AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from conftest import DEFAULT_PASSWORD, create_task
from zenamanage.core.security import create_access_token, create_refresh_token
from zenamanage.db.base import Base
from zenamanage.db.session import get_db
from zenamanage.main import app
from zenamanage.services.websocket_service import ConnectionManager, ws_manager


class FakeWebSocket:
    def __init__(self, fail: bool = False) -> None:
        self.accepted = False
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(text))


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def registered_socket() -> Iterator[tuple[FakeWebSocket, list[tuple[Any, str]]]]:
    """Track sockets registered on the shared manager and drop them afterwards."""
    registered: list[tuple[Any, str]] = []
    yield FakeWebSocket(), registered
    for websocket, user_id in registered:
        ws_manager.disconnect(websocket, user_id)


@pytest.fixture
def ws_client(tmp_path: Path) -> Iterator[TestClient]:
    """
    TestClient drives the app from its own event loop, so handshakes run against
    a file database opened per session rather than the shared in-memory one.
    """
    path = tmp_path / "realtime.db"
    schema_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(schema_engine)
    schema_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    factory = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _login(client: TestClient, email: str) -> dict[str, str]:
    response = client.post(
        "/api/v1/auth/login", json={"email": email, "password": DEFAULT_PASSWORD}
    )
    assert response.status_code == 200, response.text
    token = response.json()["access_token"]
    me = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"}).json()
    return {"token": token, "user_id": me["id"], "tenant_id": me["tenant_id"]}


def _register(client: TestClient, email: str = "owner@ws.example.com") -> dict[str, str]:
    response = client.post(
        "/api/v1/auth/register",
        json={
            "tenant_name": "Realtime Builders",
            "email": email,
            "password": DEFAULT_PASSWORD,
            "full_name": "Rita Owner",
        },
    )
    assert response.status_code == 201, response.text
    return _login(client, email)


def _ws_path(account: dict[str, str]) -> str:
    return f"/api/v1/ws/{account['user_id']}?token={account['token']}"


# ── ConnectionManager ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestConnectionManager:
    async def test_connect_and_send(self, manager: ConnectionManager) -> None:
        tab_one, tab_two = FakeWebSocket(), FakeWebSocket()
        await manager.connect(tab_one, "u1", "t1")
        await manager.connect(tab_two, "u1", "t1")
        assert tab_one.accepted and tab_two.accepted
        assert manager.connected_user_count == 1

        delivered = await manager.send_personal_message("u1", {"type": "hello"})
        assert delivered == 2
        assert tab_one.sent == [{"type": "hello"}]
        assert tab_two.sent == [{"type": "hello"}]

    async def test_send_to_offline_user(self, manager: ConnectionManager) -> None:
        assert await manager.send_personal_message("ghost", {"type": "hello"}) == 0
        assert not manager.is_connected("ghost")

    async def test_dead_socket_is_dropped(self, manager: ConnectionManager) -> None:
        healthy, dead = FakeWebSocket(), FakeWebSocket(fail=True)
        await manager.connect(healthy, "u1", "t1")
        await manager.connect(dead, "u1", "t1")

        assert await manager.send_personal_message("u1", {"type": "ping"}) == 1
        manager.disconnect(healthy, "u1")
        assert not manager.is_connected("u1")

    async def test_broadcast_stays_in_tenant(self, manager: ConnectionManager) -> None:
        ours, colleague, stranger = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
        await manager.connect(ours, "u1", "t1")
        await manager.connect(colleague, "u2", "t1")
        await manager.connect(stranger, "u3", "t2")

        await manager.broadcast_to_tenant("t1", {"type": "project.updated"})
        assert ours.sent == [{"type": "project.updated"}]
        assert colleague.sent == [{"type": "project.updated"}]
        assert stranger.sent == []


# ── Endpoint handshake ────────────────────────────────────────────────────────

class TestEndpoint:
    def test_connect_with_valid_token(self, ws_client: TestClient) -> None:
        account = _register(ws_client)
        with ws_client.websocket_connect(_ws_path(account)) as websocket:
            assert websocket.receive_json() == {
                "type": "connected",
                "user_id": account["user_id"],
                "tenant_id": account["tenant_id"],
            }
        assert not ws_manager.is_connected(account["user_id"])

    def test_client_frames(self, ws_client: TestClient) -> None:
        account = _register(ws_client)
        with ws_client.websocket_connect(_ws_path(account)) as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "ping"})
            assert websocket.receive_json() == {"type": "pong"}
            websocket.send_json({"type": "subscribe"})
            assert websocket.receive_json()["type"] == "error"

    @pytest.mark.parametrize("query", ["", "?token=garbage"])
    def test_missing_or_invalid_token(self, ws_client: TestClient, query: str) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect(f"/api/v1/ws/{uuid.uuid4()}{query}"):
                pass
        assert exc_info.value.code == 4001

    def test_refresh_token_is_rejected(self, ws_client: TestClient) -> None:
        user_id = str(uuid.uuid4())
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect(
                f"/api/v1/ws/{user_id}?token={create_refresh_token(user_id)}"
            ):
                pass
        assert exc_info.value.code == 4001

    def test_token_for_other_user(self, ws_client: TestClient) -> None:
        account = _register(ws_client)
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect(
                f"/api/v1/ws/{uuid.uuid4()}?token={account['token']}"
            ):
                pass
        assert exc_info.value.code == 4003

    def test_unknown_user_is_rejected(self, ws_client: TestClient) -> None:
        user_id = str(uuid.uuid4())
        token = create_access_token(user_id, "member", str(uuid.uuid4()))
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect(f"/api/v1/ws/{user_id}?token={token}"):
                pass
        assert exc_info.value.code == 4001

    def test_deactivated_member_is_rejected(self, ws_client: TestClient) -> None:
        admin = _register(ws_client)
        admin_headers = {"Authorization": f"Bearer {admin['token']}"}
        created = ws_client.post(
            "/api/v1/tenant/members",
            json={
                "email": "crew@ws.example.com",
                "full_name": "Crew Lead",
                "password": DEFAULT_PASSWORD,
                "role": "member",
            },
            headers=admin_headers,
        )
        assert created.status_code == 201, created.text
        member = _login(ws_client, "crew@ws.example.com")

        response = ws_client.patch(
            f"/api/v1/tenant/members/{member['user_id']}",
            json={"is_active": False},
            headers=admin_headers,
        )
        assert response.status_code == 200

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect(_ws_path(member)):
                pass
        assert exc_info.value.code == 4001


# ── Realtime delivery ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestRealtimeNotifications:
    async def test_assignment_is_pushed(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
        add_member: Any,
        project: dict[str, Any],
        registered_socket: tuple[FakeWebSocket, list[tuple[Any, str]]],
    ) -> None:
        socket, registered = registered_socket
        member = await add_member("member")
        await ws_manager.connect(socket, member["id"], member["tenant_id"])
        registered.append((socket, member["id"]))

        task = await create_task(client, admin_headers, project["id"])
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/assign",
            json={"assignee_id": member["id"]},
            headers=admin_headers,
        )
        assert response.status_code == 200

        assert len(socket.sent) == 1
        message = socket.sent[0]
        assert message["type"] == "notification"
        assert message["data"]["event"] == "task.assigned"
        assert message["data"]["entity_id"] == task["id"]
