"""The schedule aggregate — held events, announcement markers, mode.

ScheduleBook is the single owned aggregate of the engine. Its lock is the
one exclusive section: every mutating method here must be called with
``book.lock`` held. Reads of ``mode`` and ``current`` are plain attribute
reads and may be slightly stale.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from calmaint.maintenance.models import MaintenanceEvent, Mode
from calmaint.maintenance.state_store import PersistedState, StateStore
from calmaint.observability.metrics import update_maintenance_mode


class ScheduleBook:
    """Sorted schedule + processed ids + announced markers + mode.

    Args:
        store: Where snapshots are persisted after mutations.
    """

    def __init__(self, store: StateStore) -> None:
        self.lock = asyncio.Lock()
        self._store = store
        self._events: list[MaintenanceEvent] = []
        self._processed: set[str] = set()
        self._announced: dict[str, bool] = {}
        self._mode = Mode.NORMAL
        self._current: MaintenanceEvent | None = None

    # --- lock-free reads ---

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def current(self) -> MaintenanceEvent | None:
        return self._current

    @property
    def in_maintenance(self) -> bool:
        return self._mode is Mode.MAINTENANCE

    @property
    def events(self) -> list[MaintenanceEvent]:
        """Copy of the schedule, ascending by start time."""
        return list(self._events)

    def get(self, event_id: str) -> MaintenanceEvent | None:
        for event in self._events:
            if event.id == event_id:
                return event
        return None

    def is_processed(self, event_id: str) -> bool:
        return event_id in self._processed

    def is_announced(self, event_id: str) -> bool:
        return self._announced.get(event_id, False)

    @property
    def processed_ids(self) -> set[str]:
        return set(self._processed)

    # --- mutations (lock held) ---

    def upsert(self, event: MaintenanceEvent) -> MaintenanceEvent | None:
        """Insert or replace by id, keep sorted. Returns the replaced event."""
        previous = self.get(event.id)
        if previous is not None:
            self._events.remove(previous)
        self._events.append(event)
        if self._current is not None and self._current.id == event.id:
            self._current = event
        self.sort()
        return previous

    def remove(self, event_id: str) -> MaintenanceEvent | None:
        """Drop an event with its processed id and announcement marker."""
        event = self.get(event_id)
        if event is not None:
            self._events.remove(event)
        self._processed.discard(event_id)
        self._announced.pop(event_id, None)
        return event

    def drop_expired(self, now: datetime) -> list[MaintenanceEvent]:
        """Remove every ended event except the current one. Returns them."""
        current_id = self._current.id if self._current is not None else None
        expired = [e for e in self._events if e.has_ended(now) and e.id != current_id]
        for event in expired:
            self.remove(event.id)
        return expired

    def mark_processed(self, event_id: str) -> None:
        self._processed.add(event_id)

    def mark_announced(self, event_id: str) -> None:
        self._announced[event_id] = True

    def sort(self) -> None:
        self._events.sort(key=lambda e: e.start_time)

    def set_mode(self, mode: Mode, current: MaintenanceEvent | None) -> None:
        self._mode = mode
        self._current = current
        update_maintenance_mode(mode is Mode.MAINTENANCE)

    def restore(self, events: list[MaintenanceEvent], announced: dict[str, bool]) -> None:
        """Bulk-load persisted events without side effects."""
        for event in events:
            self._events = [e for e in self._events if e.id != event.id]
            self._events.append(event)
            self._processed.add(event.id)
            if announced.get(event.id):
                self._announced[event.id] = True
        self.sort()

    # --- persistence ---

    def snapshot(self) -> PersistedState:
        return PersistedState.build(
            maintenance_mode_active=self._mode is Mode.MAINTENANCE,
            events=self._events,
            notification_sent_map=self._announced,
        )

    async def persist(self) -> bool:
        return await self._store.save(self.snapshot())

    async def clear_persisted(self) -> None:
        await self._store.clear()

    async def persist_or_clear(self) -> None:
        """Persist, or delete the snapshot once nothing is left to remember."""
        if not self._events and self._mode is Mode.NORMAL:
            await self._store.clear()
        else:
            await self.persist()
