"""
WebSocket connection manager.
Manages active WebSocket connections and provides per-user and per-tenant pushes.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages active WebSocket connections keyed by user_id (string).
    A user may hold several connections (one per open tab).
    """

    def __init__(self) -> None:
        # user_id -> list of active WebSocket connections
        self._connections: dict[str, list[WebSocket]] = {}
        # user_id -> tenant_id, for tenant-wide broadcasts
        self._tenants: dict[str, str] = {}

    async def connect(self, websocket: WebSocket, user_id: str, tenant_id: str) -> None:
        await websocket.accept()
        self._connections.setdefault(user_id, []).append(websocket)
        self._tenants[user_id] = tenant_id
        logger.info("WebSocket connected: user_id=%s tenant_id=%s", user_id, tenant_id)

    def disconnect(self, websocket: WebSocket, user_id: str) -> None:
        connections = self._connections.get(user_id)
        if connections is not None:
            if websocket in connections:
                connections.remove(websocket)
            if not connections:
                del self._connections[user_id]
                self._tenants.pop(user_id, None)
        logger.info("WebSocket disconnected: user_id=%s", user_id)

    def is_connected(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    async def send_personal_message(
        self, user_id: str, data: dict[str, Any]
    ) -> int:
        """Send a JSON message to all connections of a user. Returns deliveries made."""
        connections = list(self._connections.get(user_id, []))
        if not connections:
            return 0
        message = json.dumps(data, default=str)
        delivered = 0
        dead: list[WebSocket] = []
        for ws in connections:
            try:
                await ws.send_text(message)
                delivered += 1
            except (RuntimeError, ConnectionError, WebSocketDisconnect) as exc:
                logger.warning("Dropping dead WebSocket for user_id=%s: %s", user_id, exc)
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws, user_id)
        return delivered

    async def broadcast_to_tenant(self, tenant_id: str, data: dict[str, Any]) -> None:
        """Send a JSON message to every connected user of one tenant."""
        for user_id, user_tenant in list(self._tenants.items()):
            if user_tenant == tenant_id:
                await self.send_personal_message(user_id, data)

    @property
    def connected_user_count(self) -> int:
        return len(self._connections)


# Singleton instance shared across the application
ws_manager = ConnectionManager()
