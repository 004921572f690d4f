"""Durable maintenance snapshot — JSON file load/save/clear.

The file holds {maintenanceModeActive, events, notificationSentMap}.
Timestamps are written as ISO-8601 UTC. A missing file means "no state";
an unreadable or corrupt file is logged and also treated as "no state".
Save failures are logged and swallowed: in-memory state stays
authoritative until the next successful write.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime

import aiofiles
import aiofiles.os
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from calmaint.maintenance.models import MaintenanceEvent

logger = structlog.get_logger()


class PersistedEvent(BaseModel):
    """Wire form of one MaintenanceEvent."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str = ""
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")

    @field_validator("start_time", "end_time")
    @classmethod
    def as_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are read as UTC; aware ones are normalised to UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v.astimezone(UTC)

    @classmethod
    def from_event(cls, event: MaintenanceEvent) -> PersistedEvent:
        return cls(
            id=event.id,
            title=event.title,
            description=event.description,
            start_time=event.start_time,
            end_time=event.end_time,
        )

    def to_event(self) -> MaintenanceEvent:
        return MaintenanceEvent(
            id=self.id,
            title=self.title,
            description=self.description,
            start_time=self.start_time,
            end_time=self.end_time,
        )


class PersistedState(BaseModel):
    """Snapshot of schedule, mode and announcement markers."""

    model_config = ConfigDict(populate_by_name=True)

    maintenance_mode_active: bool = Field(default=False, alias="maintenanceModeActive")
    events: list[PersistedEvent] = Field(default_factory=list)
    notification_sent_map: dict[str, bool] = Field(
        default_factory=dict, alias="notificationSentMap"
    )

    @classmethod
    def build(
        cls,
        maintenance_mode_active: bool,
        events: list[MaintenanceEvent],
        notification_sent_map: dict[str, bool],
    ) -> PersistedState:
        return cls(
            maintenance_mode_active=maintenance_mode_active,
            events=[PersistedEvent.from_event(e) for e in events],
            notification_sent_map=dict(notification_sent_map),
        )

    def to_events(self) -> list[MaintenanceEvent]:
        return [e.to_event() for e in self.events]


class StateStore:
    """Reads and writes the persisted snapshot at a single file path.

    Writes go to a sibling temp file that is then renamed over the target,
    so a crash mid-write never leaves a truncated snapshot behind.

    Args:
        file_path: Location of the state JSON file.
    """

    def __init__(self, file_path: str) -> None:
        self._file_path = file_path

    @property
    def file_path(self) -> str:
        return self._file_path

    async def exists(self) -> bool:
        return await aiofiles.os.path.exists(self._file_path)

    async def load(self) -> PersistedState | None:
        """Load the snapshot, or None when absent or unreadable."""
        if not await self.exists():
            return None

        try:
            async with aiofiles.open(self._file_path, mode="r", encoding="utf-8") as f:
                raw = await f.read()
            state = PersistedState.model_validate_json(raw)
            # Event construction re-checks invariants (aware times, end >= start)
            state.to_events()
        except (OSError, ValidationError, ValueError):
            await logger.aerror(
                "state_load_failed",
                file_path=self._file_path,
                exc_info=True,
            )
            return None

        await logger.ainfo(
            "state_loaded",
            file_path=self._file_path,
            event_count=len(state.events),
            maintenance_mode_active=state.maintenance_mode_active,
        )
        return state

    async def save(self, state: PersistedState) -> bool:
        """Write the snapshot. Returns False (and logs) on any I/O failure."""
        tmp_path = f"{self._file_path}.tmp"
        try:
            directory = os.path.dirname(self._file_path)
            if directory:
                await aiofiles.os.makedirs(directory, exist_ok=True)
            async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as f:
                await f.write(state.model_dump_json(by_alias=True, indent=2))
            await aiofiles.os.replace(tmp_path, self._file_path)
        except OSError:
            await logger.aerror(
                "state_save_failed",
                file_path=self._file_path,
                exc_info=True,
            )
            return False

        await logger.adebug(
            "state_saved",
            file_path=self._file_path,
            event_count=len(state.events),
        )
        return True

    async def clear(self) -> None:
        """Delete the snapshot file if present."""
        try:
            await aiofiles.os.remove(self._file_path)
        except FileNotFoundError:
            return
        except OSError:
            await logger.aerror("state_clear_failed", file_path=self._file_path, exc_info=True)
            return
        await logger.ainfo("state_cleared", file_path=self._file_path)
