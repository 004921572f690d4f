"""Notification scheduler — arming an occurrence's announcement and timers.

arm_event() is the idempotent single-event scheduling procedure:

1. Reject stale events (both start and end in the past).
2. If the id was processed before and the held copy is value-equal: no-op.
   A differing copy supersedes the held one.
3. Record the id, insert/replace in the schedule.
4. Announce "scheduled" once per occurrence, across passes and restarts.
5. Persist, then arm the pre-maintenance notices, the optional 30-second
   notice and the start trigger.

The start trigger fires at start_time. A start up to START_GRACE in the
past fires immediately; anything later is treated as missed.
"""

from __future__ import annotations

from datetime import timedelta, tzinfo
from functools import partial

import structlog

from calmaint.enforcement.gate import ConnectionGate
from calmaint.integrations.notifier import CompositeNotifier
from calmaint.maintenance.formatting import format_lead_time, pre_maintenance_notice
from calmaint.maintenance.loader import MaintenanceConfig
from calmaint.maintenance.models import Clock, MaintenanceEvent, NotificationKind
from calmaint.maintenance.schedule import ScheduleBook
from calmaint.maintenance.state_machine import MaintenanceStateMachine
from calmaint.maintenance.timers import NOTICE_30S_KEY, START_KEY, TimerRegistry, offset_key
from calmaint.observability.metrics import record_reconcile

logger = structlog.get_logger()

START_GRACE = timedelta(seconds=60)
FINAL_NOTICE_LEAD = timedelta(seconds=30)


class NotificationScheduler:
    """Arms and disarms the per-event timer set.

    Args:
        book: The schedule aggregate.
        timers: Timer ledger.
        state_machine: Receives the start trigger.
        notifier: Outbound lifecycle notifications.
        gate: In-game notices to connected principals.
        config: Offsets and the 30-second notice switch.
        clock: Source of "now".
        zone: Timezone for in-game notice text.
    """

    def __init__(
        self,
        book: ScheduleBook,
        timers: TimerRegistry,
        state_machine: MaintenanceStateMachine,
        notifier: CompositeNotifier,
        gate: ConnectionGate,
        config: MaintenanceConfig,
        clock: Clock,
        zone: tzinfo,
    ) -> None:
        self._book = book
        self._timers = timers
        self._state_machine = state_machine
        self._notifier = notifier
        self._gate = gate
        self._config = config
        self._clock = clock
        self._zone = zone

    async def arm_event(self, event: MaintenanceEvent) -> bool:
        """Schedule a single event. Returns True if anything changed."""
        async with self._book.lock:
            return await self.arm_locked(event)

    async def arm_locked(self, event: MaintenanceEvent) -> bool:
        """arm_event body. Caller must hold the book lock."""
        now = self._clock()
        if event.start_time < now and event.has_ended(now):
            await logger.ainfo("event_stale_skipped", event_id=event.id)
            record_reconcile("stale")
            return False

        if self._book.is_processed(event.id):
            held = self._book.get(event.id)
            if held == event:
                return False
            if held is not None:
                await logger.ainfo("event_superseded", event_id=event.id)
                self._timers.cancel_event(event.id)

        self._book.mark_processed(event.id)
        self._book.upsert(event)

        if not self._book.is_announced(event.id):
            await self._notifier.notify(NotificationKind.SCHEDULED, event)
            self._book.mark_announced(event.id)

        await self._book.persist()
        await self.arm_timers_locked(event)

        await logger.ainfo(
            "event_armed",
            event_id=event.id,
            title=event.title,
            start_time=event.start_time.isoformat(),
            timers=sorted(self._timers.armed(event.id)),
        )
        return True

    async def arm_timers_locked(self, event: MaintenanceEvent) -> None:
        """Arm notices and the start trigger for event. Caller holds the lock."""
        now = self._clock()

        for minutes in self._config.notification_offsets_minutes:
            fire_at = event.start_time - timedelta(minutes=minutes)
            if fire_at > now:
                self._timers.schedule(
                    event.id,
                    offset_key(minutes),
                    fire_at,
                    partial(self._send_notice, event, format_lead_time(minutes)),
                )

        if self._config.enable_30_second_notice:
            fire_at = event.start_time - FINAL_NOTICE_LEAD
            if fire_at > now:
                self._timers.schedule(
                    event.id,
                    NOTICE_30S_KEY,
                    fire_at,
                    partial(self._send_notice, event, "30 seconds"),
                )

        await self._arm_start_locked(event)

    async def _arm_start_locked(self, event: MaintenanceEvent) -> None:
        now = self._clock()
        if event.start_time > now:
            self._timers.schedule(event.id, START_KEY, event.start_time, partial(self._fire_start, event))
        elif now - event.start_time <= START_GRACE:
            await self._state_machine.start_locked(event)
        else:
            await logger.ainfo(
                "event_start_missed",
                event_id=event.id,
                late_seconds=int((now - event.start_time).total_seconds()),
            )

    async def _fire_start(self, event: MaintenanceEvent) -> None:
        async with self._book.lock:
            if self._book.get(event.id) != event:
                await logger.ainfo("start_trigger_stale", event_id=event.id)
                return
            await self._state_machine.start_locked(event)

    async def _send_notice(self, event: MaintenanceEvent, lead: str) -> None:
        sent = await self._gate.broadcast_notice(pre_maintenance_notice(event, lead, self._zone))
        await logger.ainfo("maintenance_notice_sent", event_id=event.id, lead=lead, recipients=sent)

    def disarm_event(self, event_id: str) -> int:
        return self._timers.cancel_event(event_id)

    def disarm_all(self) -> int:
        return self._timers.cancel_all()
