"""Test doubles: controllable clock, timers, notifier and calendar feed."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from calmaint.integrations.google_calendar import CalendarError
from calmaint.integrations.notifier import Notifier
from calmaint.maintenance.models import MaintenanceEvent
from calmaint.maintenance.timers import ArmedTimer, TimerRegistry

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class ManualTimerRegistry(TimerRegistry):
    """TimerRegistry that never starts asyncio tasks.

    advance_to() moves the clock forward and fires every timer that comes
    due on the way, earliest first, so callbacks see the time they were
    armed for.
    """

    def __init__(self, clock: FakeClock) -> None:
        super().__init__(clock)
        self.fake_clock = clock

    def _start(self, timer: ArmedTimer) -> None:
        pass

    def _next_due(self, until: datetime) -> ArmedTimer | None:
        due = [
            timer
            for handles in self._timers.values()
            for timer in handles.values()
            if timer.fire_at <= until
        ]
        return min(due, key=lambda t: t.fire_at) if due else None

    async def advance_to(self, until: datetime) -> None:
        while True:
            timer = self._next_due(until)
            if timer is None:
                break
            if timer.fire_at > self.fake_clock.now:
                self.fake_clock.now = timer.fire_at
            await self._fire(timer)
        if until > self.fake_clock.now:
            self.fake_clock.now = until

    async def advance(self, **kwargs: float) -> None:
        await self.advance_to(self.fake_clock.now + timedelta(**kwargs))


class RecordingNotifier(Notifier):
    """Records every notification as (kind, event_id)."""

    def __init__(self, fail: bool = False) -> None:
        self.calls: list[tuple[str, str]] = []
        self.updates: list[tuple[MaintenanceEvent, MaintenanceEvent]] = []
        self.fail = fail

    def _record(self, kind: str, event: MaintenanceEvent) -> bool:
        self.calls.append((kind, event.id))
        if self.fail:
            raise RuntimeError("backend down")
        return True

    def kinds(self, event_id: str | None = None) -> list[str]:
        return [kind for kind, eid in self.calls if event_id is None or eid == event_id]

    async def send_scheduled(self, event: MaintenanceEvent) -> bool:
        return self._record("scheduled", event)

    async def send_started(self, event: MaintenanceEvent) -> bool:
        return self._record("started", event)

    async def send_ended(self, event: MaintenanceEvent) -> bool:
        return self._record("ended", event)

    async def send_updated(self, old: MaintenanceEvent, new: MaintenanceEvent) -> bool:
        self.updates.append((old, new))
        return self._record("updated", new)

    async def send_cancelled(self, event: MaintenanceEvent) -> bool:
        return self._record("cancelled", event)


class FakeCalendar:
    """Stands in for GoogleCalendarClient: returns a settable batch."""

    def __init__(self, events: list[MaintenanceEvent] | None = None) -> None:
        self.events = list(events or [])
        self.fail = False
        self.calls = 0
        self.closed = False

    async def fetch_events(self) -> list[MaintenanceEvent]:
        self.calls += 1
        if self.fail:
            raise CalendarError("feed unavailable")
        return list(self.events)

    async def close(self) -> None:
        self.closed = True


def make_event(
    event_id: str,
    start: datetime,
    *,
    minutes: int = 60,
    title: str | None = None,
    description: str = "",
) -> MaintenanceEvent:
    return MaintenanceEvent(
        id=event_id,
        title=title or f"Maintenance {event_id}",
        description=description,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
    )
