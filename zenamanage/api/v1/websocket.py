"""
Realtime push channel.

A client opens ``/ws/{user_id}?token=<access token>``. The socket is closed
with 4001 when the token is missing, malformed, expired or not an access
token, or when the user or its tenant is no longer active. It is closed with
4003 when the token belongs to someone else. Once accepted the socket joins
the user's tenant so tenant-wide broadcasts reach it.

Server frames:
    {"type": "connected", "user_id": ..., "tenant_id": ...}
    {"type": "ping"}                      every WS_HEARTBEAT_SECONDS
    {"type": "notification", "data": {"event": <event key>, ...}}

Client frames:
    {"type": "pong"}   heartbeat reply
    {"type": "ping"}   answered with {"type": "pong"}
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.core.config import settings
from zenamanage.core.dependencies import DBSession, load_active_user
from zenamanage.core.exceptions import UnauthorizedException
from zenamanage.core.security import decode_access_token
from zenamanage.services.websocket_service import ws_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])

CLOSE_UNAUTHENTICATED = 4001
CLOSE_FORBIDDEN = 4003


class _HandshakeRejected(Exception):
    def __init__(self, code: int, reason: str) -> None:
        super().__init__(reason)
        self.code = code
        self.reason = reason


async def _authenticate(websocket: WebSocket, user_id: str, db: AsyncSession) -> str:
    """Validate the query token against the path user; return the tenant id."""
    token = websocket.query_params.get("token")
    if not token:
        raise _HandshakeRejected(CLOSE_UNAUTHENTICATED, "Missing authentication token")
    try:
        claims = decode_access_token(token)
    except JWTError as exc:
        raise _HandshakeRejected(CLOSE_UNAUTHENTICATED, "Invalid or expired token") from exc

    if claims.get("sub") != user_id:
        raise _HandshakeRejected(CLOSE_FORBIDDEN, "Token does not belong to this user")

    try:
        user = await load_active_user(db, uuid.UUID(user_id))
    except ValueError as exc:
        raise _HandshakeRejected(CLOSE_UNAUTHENTICATED, "Malformed token subject") from exc
    except UnauthorizedException as exc:
        raise _HandshakeRejected(CLOSE_UNAUTHENTICATED, exc.detail) from exc
    return str(user.tenant_id)


async def _reply(websocket: WebSocket, user_id: str, message: Any) -> None:
    kind = message.get("type") if isinstance(message, dict) else None
    if kind == "pong":
        logger.debug("Heartbeat acknowledged by user_id=%s", user_id)
    elif kind == "ping":
        await websocket.send_json({"type": "pong"})
    else:
        await websocket.send_json({"type": "error", "detail": "Unsupported message type"})


async def _heartbeat(websocket: WebSocket) -> None:
    while True:
        await asyncio.sleep(settings.WS_HEARTBEAT_SECONDS)
        await websocket.send_json({"type": "ping"})


@router.websocket("/ws/{user_id}")
async def websocket_endpoint(websocket: WebSocket, user_id: str, db: DBSession) -> None:
    try:
        tenant_id = await _authenticate(websocket, user_id, db)
    except _HandshakeRejected as rejected:
        await websocket.close(code=rejected.code, reason=rejected.reason)
        return
    finally:
        # The connection outlives the handshake; give the pooled connection back.
        await db.close()

    await ws_manager.connect(websocket, user_id, tenant_id)
    heartbeat = asyncio.create_task(_heartbeat(websocket))
    try:
        await websocket.send_json(
            {"type": "connected", "user_id": user_id, "tenant_id": tenant_id}
        )
        while True:
            await _reply(websocket, user_id, await websocket.receive_json())
    except WebSocketDisconnect:
        logger.info("WebSocket closed: user_id=%s tenant_id=%s", user_id, tenant_id)
    except (RuntimeError, ValueError) as exc:
        logger.warning("WebSocket dropped for user_id=%s: %s", user_id, exc)
    finally:
        heartbeat.cancel()
        with contextlib.suppress(asyncio.CancelledError, RuntimeError, WebSocketDisconnect):
            await heartbeat
        ws_manager.disconnect(websocket, user_id)
