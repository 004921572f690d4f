"""FastAPI application factory and lifespan management.

Creates the FastAPI app with:
- Async lifespan (logging, maintenance config, service recovery + polling)
- Request body size limit middleware
- All route modules registered
- Global error handlers
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from starlette.responses import JSONResponse

from calmaint import __version__
from calmaint.api.error_handlers import register_error_handlers
from calmaint.api.routes import gate, health, maintenance, metrics
from calmaint.config import Settings
from calmaint.enforcement.enforcer import ConnectionRegistry
from calmaint.log_config import configure_logging
from calmaint.maintenance.loader import load_maintenance_config
from calmaint.maintenance.service import build_service

logger = structlog.get_logger()

MAX_REQUEST_BODY_BYTES = 64 * 1024


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup and shutdown logic.

    Startup:
        1. Configure structured logging
        2. Load (or create) the maintenance YAML config
        3. Build the service around an in-memory connection registry
        4. Recover persisted state and start the calendar poll
        5. Store everything on app.state

    Shutdown:
        6. Stop polling and drain timers
    """
    settings: Settings = app.state.settings

    # 1. Logging
    configure_logging(log_level=settings.log_level, log_format=settings.log_format)

    # 2. Maintenance config
    config = await load_maintenance_config(settings.maintenance_config_path)

    # 3. Service
    registry = ConnectionRegistry()
    service = build_service(settings, config, registry)

    # 4. Recovery + polling
    report = await service.start()

    # 5. Store on app.state
    app.state.registry = registry
    app.state.service = service

    await logger.ainfo(
        "startup_complete",
        mode=service.mode.value,
        restored=report.restored,
        rearmed=report.rearmed,
        calendar_enabled=service.has_calendar,
    )

    yield

    # 6. Shutdown
    await service.stop()
    await logger.ainfo("shutdown_complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory — create and configure the FastAPI app.

    Args:
        settings: Optional Settings instance. If None, loads from environment.

    Returns:
        A fully configured FastAPI application.
    """
    if settings is None:
        from calmaint.config import get_settings
        settings = get_settings()

    app = FastAPI(
        title="calmaint",
        description="Calendar-driven maintenance mode for a game server proxy",
        version=__version__,
        lifespan=lifespan,
    )

    # Attach settings before lifespan runs
    app.state.settings = settings

    # --- Request body size limit ---
    @app.middleware("http")
    async def limit_request_body(request: Request, call_next: object) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and int(content_length) > MAX_REQUEST_BODY_BYTES:
            return JSONResponse(
                status_code=413,
                content={"detail": "Request body too large"},
            )
        response = await call_next(request)  # type: ignore[operator]
        return response

    # --- Routes ---
    app.include_router(maintenance.router)
    app.include_router(gate.router)
    app.include_router(metrics.router)
    app.include_router(health.router)

    # --- Error handlers ---
    register_error_handlers(app)

    return app
