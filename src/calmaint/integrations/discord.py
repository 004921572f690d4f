"""Discord webhook integration — sends maintenance lifecycle notices as embeds.

SECURITY: Webhook URL is never logged. All HTTP calls use configured timeout.
"""

from __future__ import annotations

from datetime import UTC, datetime, tzinfo

import httpx
import structlog

from calmaint.integrations.notifier import Notifier
from calmaint.maintenance.formatting import format_datetime
from calmaint.maintenance.models import MaintenanceEvent

logger = structlog.get_logger()

# Embed colors (decimal)
COLOR_SCHEDULED = 0xFFA500  # Orange
COLOR_STARTED = 0xFF0000  # Red
COLOR_ENDED = 0x00FF00  # Green
COLOR_UPDATED = 0xFFFF00  # Yellow
COLOR_CANCELLED = 0x808080  # Grey

_LOGIN_WARNING = "**Logging in is not possible while maintenance is in progress.**"


class DiscordNotifier(Notifier):
    """Sends notifications to a Discord channel via webhook.

    Args:
        webhook_url: The Discord webhook URL. Treated as a secret.
        timeout: HTTP request timeout in seconds.
        zone: Timezone used to render start/end times.
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0, zone: tzinfo | None = None) -> None:
        if not webhook_url.startswith("https://"):
            raise ValueError("Discord webhook URL must use HTTPS")
        self._webhook_url = webhook_url
        self._timeout = timeout
        self._zone = zone or UTC

    def _fmt(self, value: datetime) -> str:
        return format_datetime(value, self._zone)

    @staticmethod
    def _details(event: MaintenanceEvent) -> str:
        return f"\n\n**Details:** {event.description}" if event.description else ""

    async def send_scheduled(self, event: MaintenanceEvent) -> bool:
        description = (
            f"**Title:** {event.title}\n"
            f"**Start:** {self._fmt(event.start_time)}\n"
            f"**Planned end:** {self._fmt(event.end_time)}"
            f"{self._details(event)}\n\n{_LOGIN_WARNING}"
        )
        return await self._post(self._build_embed("Maintenance scheduled", description, COLOR_SCHEDULED))

    async def send_started(self, event: MaintenanceEvent) -> bool:
        description = (
            f"**{event.title}** is now in progress.\n"
            f"Please wait until it has finished.\n\n{_LOGIN_WARNING}"
        )
        return await self._post(self._build_embed("Maintenance started", description, COLOR_STARTED))

    async def send_ended(self, event: MaintenanceEvent) -> bool:
        description = f"**{event.title}** has finished.\nThank you for your patience!"
        return await self._post(self._build_embed("Maintenance finished", description, COLOR_ENDED))

    async def send_updated(self, old: MaintenanceEvent, new: MaintenanceEvent) -> bool:
        description = (
            f"**Before:** {old.title}\n"
            f"Start: {self._fmt(old.start_time)}\n"
            f"End: {self._fmt(old.end_time)}\n\n"
            f"**After:** {new.title}\n"
            f"Start: {self._fmt(new.start_time)}\n"
            f"End: {self._fmt(new.end_time)}"
            f"{self._details(new)}"
        )
        return await self._post(self._build_embed("Maintenance rescheduled", description, COLOR_UPDATED))

    async def send_cancelled(self, event: MaintenanceEvent) -> bool:
        description = (
            "The following maintenance has been cancelled.\n\n"
            f"**Title:** {event.title}\n"
            f"**Originally planned:** {self._fmt(event.start_time)} – {self._fmt(event.end_time)}"
        )
        return await self._post(self._build_embed("Maintenance cancelled", description, COLOR_CANCELLED))

    def _build_embed(self, title: str, description: str, color: int) -> dict:
        """Build a Discord embed payload."""
        return {
            "embeds": [
                {
                    "title": title,
                    "description": description,
                    "color": color,
                    "timestamp": datetime.now(UTC).isoformat(),
                    "footer": {"text": "calmaint"},
                }
            ]
        }

    async def _post(self, payload: dict) -> bool:
        """POST the payload to the Discord webhook URL."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._webhook_url,
                    json=payload,
                )
                response.raise_for_status()

            await logger.ainfo(
                "discord_notification_sent",
                title=payload["embeds"][0]["title"],
            )
            return True

        except httpx.HTTPStatusError as exc:
            await logger.aerror(
                "discord_notification_http_error",
                status_code=exc.response.status_code,
            )
            return False

        except httpx.RequestError:
            await logger.aerror(
                "discord_notification_request_error",
                exc_info=True,
            )
            return False
