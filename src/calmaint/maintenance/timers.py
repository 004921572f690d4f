"""Timer ledger — one asyncio task per armed timer, keyed by (event_id, key).

Keys used by the scheduler:
    offset:<minutes>   pre-maintenance notice N minutes before start
    notice:30s         the optional 30-second notice
    start              the start trigger

Cancellation is best effort: a timer whose callback has already begun is
left to finish. Callback exceptions are logged and never propagate.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from calmaint.maintenance.models import Clock, utcnow
from calmaint.observability.metrics import record_timer_fired

logger = structlog.get_logger()

START_KEY = "start"
NOTICE_30S_KEY = "notice:30s"

TimerCallback = Callable[[], Awaitable[None]]


def offset_key(minutes: int) -> str:
    return f"offset:{minutes}"


class TimerRegistryClosed(Exception):
    """Raised when scheduling on a registry that has been shut down."""


@dataclass
class ArmedTimer:
    """Bookkeeping for one armed timer."""

    event_id: str
    key: str
    fire_at: datetime
    callback: TimerCallback
    task: asyncio.Task[None] | None = field(default=None, repr=False)
    firing: bool = False


class TimerRegistry:
    """Arms, cancels and drains per-event timers.

    Args:
        clock: Source of the current time, used to turn fire_at into a delay.
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._timers: dict[str, dict[str, ArmedTimer]] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(
        self, event_id: str, key: str, fire_at: datetime, callback: TimerCallback
    ) -> ArmedTimer:
        """Arm a timer, replacing any timer already held under the same key."""
        if self._closed:
            raise TimerRegistryClosed(f"cannot arm {event_id}/{key}: registry is shut down")

        self.cancel(event_id, key)
        timer = ArmedTimer(event_id=event_id, key=key, fire_at=fire_at, callback=callback)
        self._timers.setdefault(event_id, {})[key] = timer
        self._start(timer)
        return timer

    def _start(self, timer: ArmedTimer) -> None:
        delay = max(0.0, (timer.fire_at - self._clock()).total_seconds())
        task = asyncio.get_running_loop().create_task(
            self._run(timer, delay), name=f"timer:{timer.event_id}:{timer.key}"
        )
        timer.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, timer: ArmedTimer, delay: float) -> None:
        await asyncio.sleep(delay)
        await self._fire(timer)

    async def _fire(self, timer: ArmedTimer) -> None:
        timer.firing = True
        self._forget(timer)
        record_timer_fired(timer.key.split(":", 1)[0])
        try:
            await timer.callback()
        except Exception:
            await logger.aerror(
                "timer_callback_failed",
                event_id=timer.event_id,
                key=timer.key,
                exc_info=True,
            )

    def _forget(self, timer: ArmedTimer) -> None:
        handles = self._timers.get(timer.event_id)
        if handles is None or handles.get(timer.key) is not timer:
            return
        del handles[timer.key]
        if not handles:
            del self._timers[timer.event_id]

    def _cancel_timer(self, timer: ArmedTimer) -> None:
        if timer.task is not None and not timer.firing:
            timer.task.cancel()

    def cancel(self, event_id: str, key: str) -> bool:
        """Cancel a single timer. Returns True if one was armed."""
        handles = self._timers.get(event_id)
        if not handles or key not in handles:
            return False
        timer = handles.pop(key)
        if not handles:
            del self._timers[event_id]
        self._cancel_timer(timer)
        return True

    def cancel_event(self, event_id: str) -> int:
        """Cancel every timer armed for an event. Returns how many were armed."""
        handles = self._timers.pop(event_id, {})
        for timer in handles.values():
            self._cancel_timer(timer)
        return len(handles)

    def cancel_all(self) -> int:
        """Cancel every armed timer. Returns how many were armed."""
        count = 0
        for event_id in list(self._timers):
            count += self.cancel_event(event_id)
        return count

    def armed(self, event_id: str) -> dict[str, datetime]:
        """Map of key -> fire time for an event's pending timers."""
        return {key: t.fire_at for key, t in self._timers.get(event_id, {}).items()}

    def armed_event_ids(self) -> set[str]:
        return set(self._timers)

    def __len__(self) -> int:
        return sum(len(handles) for handles in self._timers.values())

    async def shutdown(self, grace_seconds: float = 5.0) -> None:
        """Stop accepting timers, cancel pending ones, drain in-flight callbacks.

        Callbacks still running after grace_seconds are abandoned rather
        than cancelled, so no mutation is interrupted halfway.
        """
        self._closed = True
        cancelled = self.cancel_all()

        inflight = {t for t in self._tasks if not t.done()}
        if inflight:
            _done, pending = await asyncio.wait(inflight, timeout=grace_seconds)
            if pending:
                await logger.awarning(
                    "timer_shutdown_abandoned",
                    abandoned=len(pending),
                    grace_seconds=grace_seconds,
                )

        await logger.ainfo("timer_registry_shutdown", cancelled=cancelled)
