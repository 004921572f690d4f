"""Core value types for the maintenance engine.

MaintenanceEvent is an immutable, value-equal description of one
maintenance window. Equality over every field is the change-detection
key used during reconciliation: same id means same occurrence, full
equality means unchanged.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Default clock — the current aware UTC time."""
    return datetime.now(UTC)


class Mode(str, enum.Enum):
    """Process-wide maintenance mode."""

    NORMAL = "normal"
    MAINTENANCE = "maintenance"


class NotificationKind(str, enum.Enum):
    """Lifecycle notifications emitted to the outbound channel."""

    SCHEDULED = "scheduled"
    STARTED = "started"
    ENDED = "ended"
    UPDATED = "updated"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class MaintenanceEvent:
    """One maintenance window identified by a stable external id.

    Timestamps must be timezone-aware; end_time may equal start_time but
    never precede it.
    """

    id: str
    title: str
    description: str
    start_time: datetime
    end_time: datetime

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("MaintenanceEvent id must not be empty")
        if self.start_time.tzinfo is None or self.end_time.tzinfo is None:
            raise ValueError(f"MaintenanceEvent '{self.id}' times must be timezone-aware")
        if self.end_time < self.start_time:
            raise ValueError(
                f"MaintenanceEvent '{self.id}' ends before it starts "
                f"({self.end_time.isoformat()} < {self.start_time.isoformat()})"
            )

    def has_started(self, now: datetime) -> bool:
        return self.start_time <= now

    def has_ended(self, now: datetime) -> bool:
        return self.end_time < now


@dataclass(frozen=True)
class Principal:
    """A connected user of the host service."""

    id: str
    name: str
    grants: frozenset[str] = field(default_factory=frozenset)
