"""Startup recovery — rebuild the engine from the persisted snapshot.

Phase 1 rehydrates the schedule book (events, processed ids, announced
markers) with no side effects. Everything must be restored before any
mutation, otherwise the first persist would overwrite entries not yet
read back.

Phase 2 derives actions purely from the rehydrated book:
  - only if the snapshot says maintenance was active, silently resume it
    for the first started event that is still running, falling back to the
    first started one when all of them have overrun;
  - drop every other event that has already ended;
  - re-arm notices and start triggers for every event still in the future.

No "scheduled" announcement is sent: markers come from the snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from calmaint.maintenance.models import Clock, MaintenanceEvent
from calmaint.maintenance.schedule import ScheduleBook
from calmaint.maintenance.scheduler import NotificationScheduler
from calmaint.maintenance.state_machine import MaintenanceStateMachine
from calmaint.maintenance.state_store import StateStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class RecoveryReport:
    restored: int
    rearmed: int
    resumed: MaintenanceEvent | None


async def recover(
    store: StateStore,
    book: ScheduleBook,
    state_machine: MaintenanceStateMachine,
    scheduler: NotificationScheduler,
    clock: Clock,
) -> RecoveryReport:
    """Restore schedule, timers and mode from the state file."""
    state = await store.load()
    if state is None or not state.events:
        await logger.ainfo("recovery_clean_start")
        return RecoveryReport(restored=0, rearmed=0, resumed=None)

    async with book.lock:
        # Phase 1
        book.restore(state.to_events(), state.notification_sent_map)

        # Phase 2
        now = clock()
        resumed: MaintenanceEvent | None = None
        if state.maintenance_mode_active:
            started = [e for e in book.events if e.start_time < now]
            running = [e for e in started if not e.has_ended(now)]
            if started:
                resumed = (running or started)[0]
                await state_machine.start_locked(resumed, announce=False)

        expired = book.drop_expired(now)
        for event in expired:
            await logger.ainfo("event_expired", event_id=event.id, title=event.title)

        rearmed = 0
        for event in book.events:
            if event.start_time > now:
                await scheduler.arm_timers_locked(event)
                rearmed += 1

        book.sort()
        if expired:
            await book.persist_or_clear()

    await logger.ainfo(
        "recovery_completed",
        restored=len(state.events),
        rearmed=rearmed,
        expired=len(expired),
        resumed_event_id=resumed.id if resumed else None,
    )
    return RecoveryReport(restored=len(state.events), rearmed=rearmed, resumed=resumed)
