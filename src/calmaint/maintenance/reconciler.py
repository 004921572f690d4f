"""Reconciliation — diff a fetched event batch against the held schedule.

The feed is polled, not pushed: deletions and edits are inferred from set
difference on id and value equality. One pass, under the book lock:

1. Ended events other than the current maintenance are dropped silently.
   Held events missing from the batch are cancelled (notify, disarm,
   remove) unless they have already ended. Feeds do not report past
   events, so their absence means nothing.
2. Batch events with a new id go through the single-event scheduling
   procedure. Value-equal events are left alone. Changed events are
   announced as updated, disarmed, replaced and re-armed.
3. If anything changed, the schedule is re-sorted and persisted, or the
   snapshot is deleted when nothing is held and mode is Normal.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from calmaint.integrations.notifier import CompositeNotifier
from calmaint.maintenance.models import Clock, MaintenanceEvent, NotificationKind
from calmaint.maintenance.schedule import ScheduleBook
from calmaint.maintenance.scheduler import NotificationScheduler
from calmaint.observability.metrics import record_reconcile

logger = structlog.get_logger()


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass, as lists of event ids."""

    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)
    expired: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.cancelled or self.expired)


class Reconciler:
    """Applies add/update/cancel semantics to the schedule.

    Args:
        book: The schedule aggregate.
        scheduler: Arms new and updated events.
        notifier: Outbound lifecycle notifications.
        clock: Source of "now".
    """

    def __init__(
        self,
        book: ScheduleBook,
        scheduler: NotificationScheduler,
        notifier: CompositeNotifier,
        clock: Clock,
    ) -> None:
        self._book = book
        self._scheduler = scheduler
        self._notifier = notifier
        self._clock = clock

    async def reconcile(self, fetched: list[MaintenanceEvent]) -> ReconcileResult:
        """Run one reconciliation pass over the full set of visible events."""
        result = ReconcileResult()

        fetched_by_id: dict[str, MaintenanceEvent] = {}
        for event in fetched:
            if event.id in fetched_by_id:
                await logger.awarning("reconcile_duplicate_id", event_id=event.id)
            fetched_by_id[event.id] = event

        async with self._book.lock:
            now = self._clock()

            # 1. Expiry and removals
            for expired in self._book.drop_expired(now):
                self._scheduler.disarm_event(expired.id)
                result.expired.append(expired.id)
                await logger.ainfo("event_expired", event_id=expired.id, title=expired.title)

            for held in self._book.events:
                if held.id in fetched_by_id or held.has_ended(now):
                    continue
                await logger.ainfo("maintenance_cancelled", event_id=held.id, title=held.title)
                await self._notifier.notify(NotificationKind.CANCELLED, held)
                self._scheduler.disarm_event(held.id)
                self._book.remove(held.id)
                result.cancelled.append(held.id)

            # 2. Additions and updates
            for event in fetched_by_id.values():
                held = self._book.get(event.id)
                if held is None:
                    if await self._scheduler.arm_locked(event):
                        result.added.append(event.id)
                    else:
                        result.stale.append(event.id)
                elif held == event:
                    result.unchanged.append(event.id)
                else:
                    await self._apply_update(held, event)
                    result.updated.append(event.id)

            # 3. Sort and persist
            if result.changed:
                self._book.sort()
                await self._book.persist_or_clear()

        for outcome in ("added", "updated", "cancelled", "unchanged", "expired"):
            record_reconcile(outcome, len(getattr(result, outcome)))

        await logger.ainfo(
            "reconcile_completed",
            fetched=len(fetched_by_id),
            added=len(result.added),
            updated=len(result.updated),
            cancelled=len(result.cancelled),
            unchanged=len(result.unchanged),
            stale=len(result.stale),
            expired=len(result.expired),
        )
        return result

    async def _apply_update(self, held: MaintenanceEvent, event: MaintenanceEvent) -> None:
        await logger.ainfo(
            "maintenance_updated",
            event_id=event.id,
            old_start=held.start_time.isoformat(),
            new_start=event.start_time.isoformat(),
            old_end=held.end_time.isoformat(),
            new_end=event.end_time.isoformat(),
        )
        await self._notifier.notify(NotificationKind.UPDATED, event, previous=held)
        self._scheduler.disarm_event(event.id)
        self._book.upsert(event)
        self._book.mark_processed(event.id)
        await self._scheduler.arm_timers_locked(event)
