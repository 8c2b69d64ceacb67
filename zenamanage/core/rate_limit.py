"""
Shared slowapi limiter.
Routes decorate with `limiter.limit(...)`; main.py attaches the same instance to app.state.
"""
from __future__ import annotations

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from zenamanage.core.config import settings

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render a 429 in the same envelope as every other API error."""
    logger.warning(
        "Rate limit hit: %s %s from %s",
        request.method,
        request.url.path,
        get_remote_address(request),
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": "RATE_LIMITED", "detail": f"Too many requests: {exc.detail}"},
    )
