"""Maintenance administration API — status, schedule, end, sync.

All routes require the admin key.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from calmaint.api.auth import require_admin_key
from calmaint.api.dependencies import get_service
from calmaint.api.schemas import (
    EndResponse,
    EventResponse,
    ScheduleEntryResponse,
    ScheduleResponse,
    StatusResponse,
    SyncResponse,
)
from calmaint.maintenance.formatting import SCHEDULE_REPORT_LIMIT, render_schedule
from calmaint.maintenance.service import MaintenanceService

router = APIRouter(prefix="/maintenance")


@router.get("/status", response_model=StatusResponse)
async def maintenance_status(
    request: Request,
    _admin_key: str = Depends(require_admin_key),
    service: MaintenanceService = Depends(get_service),
) -> StatusResponse:
    """Current mode, the active event and the next one."""
    current = service.current
    upcoming = service.next_event()
    return StatusResponse(
        mode=service.mode,
        current_event=EventResponse.from_event(current) if current else None,
        next_event=EventResponse.from_event(upcoming) if upcoming else None,
        scheduled_count=len(service.book.events),
        calendar_enabled=service.has_calendar,
    )


@router.get("/schedule", response_model=ScheduleResponse)
async def maintenance_schedule(
    request: Request,
    limit: int = Query(default=SCHEDULE_REPORT_LIMIT, ge=1, le=SCHEDULE_REPORT_LIMIT),
    _admin_key: str = Depends(require_admin_key),
    service: MaintenanceService = Depends(get_service),
) -> ScheduleResponse:
    """The schedule report: up to five held events with status and delta."""
    entries = service.schedule(limit)
    return ScheduleResponse(
        entries=[ScheduleEntryResponse.from_entry(e) for e in entries],
        rendered=render_schedule(entries, service.zone),
    )


@router.post("/end", response_model=EndResponse)
async def end_maintenance(
    request: Request,
    _admin_key: str = Depends(require_admin_key),
    service: MaintenanceService = Depends(get_service),
) -> EndResponse:
    """End maintenance. A no-op (ended=false) when already Normal."""
    ended = await service.end()
    return EndResponse(ended=ended, mode=service.mode)


@router.post("/sync", response_model=SyncResponse)
async def sync_calendar(
    request: Request,
    _admin_key: str = Depends(require_admin_key),
    service: MaintenanceService = Depends(get_service),
) -> SyncResponse:
    """Poll the calendar now instead of waiting for the next cycle."""
    if not service.has_calendar:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Calendar feed is not configured",
        )

    result = await service.poll_once()
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Calendar fetch failed",
        )

    return SyncResponse(
        added=result.added,
        updated=result.updated,
        cancelled=result.cancelled,
        unchanged=result.unchanged,
        stale=result.stale,
        expired=result.expired,
    )
