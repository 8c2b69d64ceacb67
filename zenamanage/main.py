"""
ZenaManage API entrypoint.
Builds the FastAPI app: logging, CORS, rate limiting, error envelope, routers and health check.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from zenamanage.api.v1.router import api_router
from zenamanage.core.config import settings
from zenamanage.core.dependencies import DBSession
from zenamanage.core.exceptions import register_exception_handlers
from zenamanage.core.logging_config import configure_logging
from zenamanage.core.rate_limit import limiter, rate_limit_exceeded_handler
from zenamanage.db.session import engine
from zenamanage.services.websocket_service import ws_manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging()
    logger.info(
        "Starting %s v%s (debug=%s, rate limiting=%s)",
        settings.APP_NAME,
        settings.APP_VERSION,
        settings.DEBUG,
        settings.RATE_LIMIT_ENABLED,
    )
    try:
        yield
    finally:
        logger.info(
            "Shutting down %s with %d realtime user(s) connected",
            settings.APP_NAME,
            ws_manager.connected_user_count,
        )
        await engine.dispose()


def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=(
            "Multi-tenant construction project management API: projects, tasks with "
            "a guarded status workflow, change requests, notifications and dashboards."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Conditional GETs need the validators visible to browser clients.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["ETag", "Cache-Control"],
    )

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]
    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/health", tags=["Health"], include_in_schema=False)
    async def health_check(db: DBSession) -> dict[str, str | int]:
        try:
            await db.execute(text("SELECT 1"))
            database = "ok"
        except SQLAlchemyError:
            logger.exception("Health check could not reach the database")
            database = "unavailable"
        return {
            "status": "ok" if database == "ok" else "degraded",
            "service": settings.APP_NAME,
            "database": database,
            "realtime_users": ws_manager.connected_user_count,
        }

    return app


app = create_application()
