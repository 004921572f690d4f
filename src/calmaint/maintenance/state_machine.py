"""Maintenance mode state machine: Normal <-> Maintenance.

Normal -> Maintenance is driven by a start timer or by recovery.
Maintenance -> Normal only happens through an explicit end() call, never
from a timer. While in Maintenance a second start request is ignored:
the first event to start stays current.
"""

from __future__ import annotations

import structlog

from calmaint.enforcement.gate import ConnectionGate
from calmaint.integrations.notifier import CompositeNotifier
from calmaint.maintenance.models import Clock, MaintenanceEvent, Mode, NotificationKind, utcnow
from calmaint.maintenance.schedule import ScheduleBook
from calmaint.maintenance.timers import TimerRegistry

logger = structlog.get_logger()


class MaintenanceStateMachine:
    """Owns the mode transitions of the ScheduleBook.

    Args:
        book: The schedule aggregate (holds mode and current event).
        timers: Timer ledger, used to disarm an ended event.
        notifier: Outbound lifecycle notifications.
        gate: Enforcement actions against connected principals.
        clock: Source of "now", used to drop ended leftovers on end().
    """

    def __init__(
        self,
        book: ScheduleBook,
        timers: TimerRegistry,
        notifier: CompositeNotifier,
        gate: ConnectionGate,
        clock: Clock = utcnow,
    ) -> None:
        self._book = book
        self._timers = timers
        self._notifier = notifier
        self._gate = gate
        self._clock = clock

    @property
    def mode(self) -> Mode:
        return self._book.mode

    @property
    def current(self) -> MaintenanceEvent | None:
        return self._book.current

    async def start_locked(self, event: MaintenanceEvent, *, announce: bool = True) -> bool:
        """Enter Maintenance for event. Caller must hold the book lock.

        Returns False (and changes nothing) if already in Maintenance.
        announce=False is used by silent recovery.
        """
        if self._book.in_maintenance:
            current = self._book.current
            await logger.ainfo(
                "maintenance_start_ignored",
                event_id=event.id,
                current_event_id=current.id if current else None,
            )
            return False

        self._book.set_mode(Mode.MAINTENANCE, event)
        await logger.ainfo(
            "maintenance_started", event_id=event.id, title=event.title, announced=announce
        )

        await self._gate.disconnect_disallowed()
        if announce:
            await self._notifier.notify(NotificationKind.STARTED, event)

        await self._book.persist()
        return True

    async def start(self, event: MaintenanceEvent, *, announce: bool = True) -> bool:
        async with self._book.lock:
            return await self.start_locked(event, announce=announce)

    async def end(self) -> bool:
        """Leave Maintenance. Returns False when already Normal (no-op)."""
        async with self._book.lock:
            if not self._book.in_maintenance:
                return False

            current = self._book.current
            if current is not None:
                await self._notifier.notify(NotificationKind.ENDED, current)
                self._book.remove(current.id)
                self._timers.cancel_event(current.id)

            self._book.set_mode(Mode.NORMAL, None)
            for expired in self._book.drop_expired(self._clock()):
                self._timers.cancel_event(expired.id)
                await logger.ainfo("event_expired", event_id=expired.id, title=expired.title)

            await logger.ainfo(
                "maintenance_ended",
                event_id=current.id if current else None,
                remaining=len(self._book.events),
            )

            if not self._book.events:
                self._timers.cancel_all()
                await self._book.clear_persisted()
            else:
                await self._book.persist()
            return True
