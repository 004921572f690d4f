"""Health check endpoints — liveness and full health.

- GET /health/live — fast liveness probe (no auth)
- GET /health — full health with optional auth
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from calmaint.api.auth import optional_api_key
from calmaint.api.dependencies import get_service
from calmaint.api.schemas import HealthFullResponse, HealthMinimalResponse
from calmaint.maintenance.service import MaintenanceService

router = APIRouter()


class LivenessResponse(BaseModel):
    """Liveness probe response — no sensitive data."""

    status: str


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_probe() -> LivenessResponse:
    """Fast liveness probe — is the process running?

    No auth required. Returns immediately.
    """
    return LivenessResponse(status="alive")


@router.get("/health")
async def health_check(
    request: Request,
    api_key: str | None = Depends(optional_api_key),
    service: MaintenanceService = Depends(get_service),
) -> HealthMinimalResponse | HealthFullResponse:
    """Check service health.

    Without authentication: returns minimal {"status": "healthy"}.
    With valid API key: mode, schedule size, armed timers, feed and
    state file presence. "degraded" once the timer registry is shut down.
    """
    if api_key is None:
        return HealthMinimalResponse(status="healthy")

    return HealthFullResponse(
        status="degraded" if service.timers.closed else "healthy",
        mode=service.mode,
        scheduled_count=len(service.book.events),
        armed_timers=len(service.timers),
        calendar_enabled=service.has_calendar,
        state_file_present=await service.store.exists(),
    )
