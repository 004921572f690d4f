"""Prometheus metrics for calmaint observability.

Exposes counters and gauges for reconciliation, notifications, timers,
feed polling and the maintenance mode flag. Served at GET /metrics
(auth required).
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, generate_latest

# --- Reconciliation metrics ---

RECONCILE_EVENTS_TOTAL = Counter(
    "calmaint_reconcile_events_total",
    "Events seen by reconciliation passes, by outcome",
    ["outcome"],
)

# --- Feed metrics ---

FEED_POLL_TOTAL = Counter(
    "calmaint_feed_poll_total",
    "Calendar feed polls",
    ["result"],
)

# --- Notification metrics ---

NOTIFICATION_TOTAL = Counter(
    "calmaint_notification_total",
    "Lifecycle notifications dispatched",
    ["kind", "success"],
)

# --- Timer metrics ---

TIMER_FIRED_TOTAL = Counter(
    "calmaint_timer_fired_total",
    "Timers that fired",
    ["kind"],
)

# --- Mode ---

MAINTENANCE_MODE = Gauge(
    "calmaint_maintenance_mode",
    "1 while maintenance mode is active, else 0",
)


def record_reconcile(outcome: str, count: int = 1) -> None:
    """Record reconciliation outcomes (added/updated/cancelled/unchanged/stale)."""
    if count:
        RECONCILE_EVENTS_TOTAL.labels(outcome=outcome).inc(count)


def record_feed_poll(result: str) -> None:
    """Record a feed poll result (ok/error)."""
    FEED_POLL_TOTAL.labels(result=result).inc()


def record_notification(kind: str, success: bool) -> None:
    """Record a lifecycle notification dispatch."""
    NOTIFICATION_TOTAL.labels(kind=kind, success=str(success).lower()).inc()


def record_timer_fired(kind: str) -> None:
    """Record a timer firing (offset/notice/start)."""
    TIMER_FIRED_TOTAL.labels(kind=kind).inc()


def update_maintenance_mode(active: bool) -> None:
    """Update the maintenance mode gauge."""
    MAINTENANCE_MODE.set(1 if active else 0)


def get_metrics_text() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()
