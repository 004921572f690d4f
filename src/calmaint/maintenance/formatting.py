"""Human-readable times, lead times and the schedule report."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo

from calmaint.maintenance.models import MaintenanceEvent

SCHEDULE_REPORT_LIMIT = 5


def format_datetime(value: datetime, zone: tzinfo) -> str:
    """e.g. "2026/10/17 (Sat) 21:00"."""
    return value.astimezone(zone).strftime("%Y/%m/%d (%a) %H:%M")


def format_lead_time(minutes: int) -> str:
    """Lead time of a pre-maintenance notice — whole hours from 60 minutes up."""
    if minutes >= 60:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"


def format_duration(delta: timedelta) -> str:
    """Compact d/h/m rendering, truncating to whole minutes: "1d 2h 5m", "45m"."""
    total_minutes = max(0, int(delta.total_seconds() // 60))
    days, rem = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rem, 60)
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


class EntryStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    OVERRUN = "overrun"


@dataclass(frozen=True)
class ScheduleEntry:
    """One line of the schedule report."""

    event: MaintenanceEvent
    status: EntryStatus
    delta: str


def describe_entry(event: MaintenanceEvent, now: datetime) -> ScheduleEntry:
    if now < event.start_time:
        return ScheduleEntry(event, EntryStatus.UPCOMING, f"in {format_duration(event.start_time - now)}")
    if now < event.end_time:
        return ScheduleEntry(
            event, EntryStatus.IN_PROGRESS, f"{format_duration(event.end_time - now)} remaining"
        )
    return ScheduleEntry(event, EntryStatus.OVERRUN, f"ended {format_duration(now - event.end_time)} ago")


def schedule_report(
    events: list[MaintenanceEvent], now: datetime, limit: int = SCHEDULE_REPORT_LIMIT
) -> list[ScheduleEntry]:
    """Up to ``limit`` schedule entries, earliest first."""
    ordered = sorted(events, key=lambda e: e.start_time)
    return [describe_entry(e, now) for e in ordered[:limit]]


def render_schedule(entries: list[ScheduleEntry], zone: tzinfo) -> str:
    """Plain-text block used by the CLI."""
    if not entries:
        return "No maintenance is currently scheduled."

    blocks = []
    for index, entry in enumerate(entries, start=1):
        event = entry.event
        blocks.append(
            "\n".join([
                f"{index}. {event.title}",
                f"   Description: {event.description or 'none'}",
                f"   Start:       {format_datetime(event.start_time, zone)}",
                f"   End:         {format_datetime(event.end_time, zone)}",
                f"   Status:      {entry.status.value} ({entry.delta})",
            ])
        )
    return "\n\n".join(blocks)


def pre_maintenance_notice(event: MaintenanceEvent, lead: str, zone: tzinfo) -> str:
    return (
        f"[Maintenance notice] Maintenance starts in {lead}.\n"
        f"Title: {event.title}\n"
        f"Start: {format_datetime(event.start_time, zone)}"
    )


def login_notice(event: MaintenanceEvent, now: datetime, zone: tzinfo) -> str:
    return (
        f"[Upcoming maintenance] Maintenance is scheduled in {format_duration(event.start_time - now)}.\n"
        f"Title: {event.title}\n"
        f"Start: {format_datetime(event.start_time, zone)}"
    )
