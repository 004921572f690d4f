"""Abstract notifier protocol and composite notifier.

Defines the interface that the Discord and Slack notifiers implement.
The composite notifier dispatches to all configured backends concurrently.
Failures in one backend never block the others, and never reach the
maintenance engine.
"""

from __future__ import annotations

import abc
import asyncio
from datetime import tzinfo
from typing import Any

import structlog

from calmaint.maintenance.models import MaintenanceEvent, NotificationKind
from calmaint.observability.metrics import record_notification

logger = structlog.get_logger()


class Notifier(abc.ABC):
    """Abstract base for notification backends.

    Every method returns True if the notification was delivered.
    """

    @abc.abstractmethod
    async def send_scheduled(self, event: MaintenanceEvent) -> bool:
        """A new maintenance window was announced."""

    @abc.abstractmethod
    async def send_started(self, event: MaintenanceEvent) -> bool:
        """Maintenance mode was switched on for event."""

    @abc.abstractmethod
    async def send_ended(self, event: MaintenanceEvent) -> bool:
        """Maintenance mode was switched off after event."""

    @abc.abstractmethod
    async def send_updated(self, old: MaintenanceEvent, new: MaintenanceEvent) -> bool:
        """A scheduled window changed (time, title or description)."""

    @abc.abstractmethod
    async def send_cancelled(self, event: MaintenanceEvent) -> bool:
        """A scheduled window disappeared from the calendar."""


_METHODS = {
    NotificationKind.SCHEDULED: "send_scheduled",
    NotificationKind.STARTED: "send_started",
    NotificationKind.ENDED: "send_ended",
    NotificationKind.UPDATED: "send_updated",
    NotificationKind.CANCELLED: "send_cancelled",
}


class CompositeNotifier:
    """Dispatches notifications to all configured backends concurrently.

    Failures in one backend are logged but never propagate to callers
    or block other backends from sending.

    Args:
        notifiers: List of Notifier implementations to dispatch to.
    """

    def __init__(self, notifiers: list[Notifier]) -> None:
        self._notifiers = notifiers

    @property
    def backends(self) -> list[Notifier]:
        """Return the list of configured notification backends."""
        return list(self._notifiers)

    async def notify(
        self,
        kind: NotificationKind,
        event: MaintenanceEvent,
        previous: MaintenanceEvent | None = None,
    ) -> list[bool]:
        """Send a lifecycle notification to all backends.

        Args:
            kind: Which lifecycle notification to send.
            event: The event concerned (the new version for UPDATED).
            previous: The old version, required for UPDATED.

        Returns:
            List of success/failure booleans, one per backend.
        """
        if kind is NotificationKind.UPDATED:
            if previous is None:
                raise ValueError("UPDATED notifications need the previous event")
            args: tuple[Any, ...] = (previous, event)
        else:
            args = (event,)

        outcomes = await self._dispatch(_METHODS[kind], event.id, *args)
        for ok in outcomes:
            record_notification(kind.value, ok)
        return outcomes

    async def _dispatch(self, method: str, event_id: str, *args: Any) -> list[bool]:
        """Dispatch a notification method to all backends concurrently."""
        if not self._notifiers:
            return []

        tasks = [
            asyncio.create_task(self._safe_send(notifier, method, event_id, *args))
            for notifier in self._notifiers
        ]
        return list(await asyncio.gather(*tasks))

    async def _safe_send(
        self, notifier: Notifier, method: str, event_id: str, *args: Any
    ) -> bool:
        """Call a notifier method, catching and logging any exceptions."""
        try:
            fn = getattr(notifier, method)
            return await fn(*args)
        except Exception:
            await logger.aerror(
                "notification_failed",
                backend=type(notifier).__name__,
                method=method,
                event_id=event_id,
                exc_info=True,
            )
            return False


def create_notifier(
    discord_webhook_url: str | None = None,
    slack_webhook_url: str | None = None,
    httpx_timeout: float = 10.0,
    zone: tzinfo | None = None,
) -> CompositeNotifier:
    """Factory — build a CompositeNotifier from configured webhook URLs.

    Only backends with a configured URL are included. If no URLs are
    configured, the composite notifier has no backends (notifications
    are silently skipped).

    Args:
        discord_webhook_url: Discord webhook URL, or None to skip.
        slack_webhook_url: Slack Incoming Webhook URL, or None to skip.
        httpx_timeout: HTTP request timeout in seconds.
        zone: Timezone used to render times in messages.

    Returns:
        A CompositeNotifier with the configured backends.
    """
    from calmaint.integrations.discord import DiscordNotifier
    from calmaint.integrations.slack import SlackNotifier

    notifiers: list[Notifier] = []

    if discord_webhook_url:
        notifiers.append(DiscordNotifier(
            webhook_url=str(discord_webhook_url),
            timeout=httpx_timeout,
            zone=zone,
        ))

    if slack_webhook_url:
        notifiers.append(SlackNotifier(
            webhook_url=str(slack_webhook_url),
            timeout=httpx_timeout,
            zone=zone,
        ))

    return CompositeNotifier(notifiers)
