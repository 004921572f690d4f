"""Slack webhook integration — sends maintenance notices as Block Kit messages.

SECURITY: Webhook URL is never logged. All HTTP calls use configured timeout.
Descriptions are truncated to 1000 chars.
"""

from __future__ import annotations

from datetime import UTC, tzinfo

import httpx
import structlog

from calmaint.integrations.notifier import Notifier
from calmaint.maintenance.formatting import format_datetime
from calmaint.maintenance.models import MaintenanceEvent

logger = structlog.get_logger()

_MAX_DESCRIPTION_LENGTH = 1000

COLOR_SCHEDULED = "#FFA500"
COLOR_STARTED = "#FF0000"
COLOR_ENDED = "#00FF00"
COLOR_UPDATED = "#FFFF00"
COLOR_CANCELLED = "#808080"


class SlackNotifier(Notifier):
    """Sends notifications to a Slack channel via Incoming Webhook.

    Args:
        webhook_url: The Slack Incoming Webhook URL. Treated as a secret.
        timeout: HTTP request timeout in seconds.
        zone: Timezone used to render start/end times.
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0, zone: tzinfo | None = None) -> None:
        if not webhook_url.startswith("https://"):
            raise ValueError("Slack webhook URL must use HTTPS")
        self._webhook_url = webhook_url
        self._timeout = timeout
        self._zone = zone or UTC

    def _window(self, event: MaintenanceEvent) -> str:
        start = format_datetime(event.start_time, self._zone)
        end = format_datetime(event.end_time, self._zone)
        return f"{start} – {end}"

    async def send_scheduled(self, event: MaintenanceEvent) -> bool:
        return await self._post(self._build_payload("Maintenance scheduled", event, COLOR_SCHEDULED))

    async def send_started(self, event: MaintenanceEvent) -> bool:
        return await self._post(self._build_payload("Maintenance started", event, COLOR_STARTED))

    async def send_ended(self, event: MaintenanceEvent) -> bool:
        return await self._post(self._build_payload("Maintenance finished", event, COLOR_ENDED))

    async def send_updated(self, old: MaintenanceEvent, new: MaintenanceEvent) -> bool:
        payload = self._build_payload("Maintenance rescheduled", new, COLOR_UPDATED)
        payload["attachments"][0]["blocks"].insert(1, {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Previously:* {old.title} ({self._window(old)})"},
        })
        return await self._post(payload)

    async def send_cancelled(self, event: MaintenanceEvent) -> bool:
        return await self._post(self._build_payload("Maintenance cancelled", event, COLOR_CANCELLED))

    def _build_payload(self, title: str, event: MaintenanceEvent, color: str) -> dict:
        """Build a Slack Block Kit attachment payload."""
        blocks: list[dict] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": title},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Title:* {event.title}"},
                    {"type": "mrkdwn", "text": f"*Window:* {self._window(event)}"},
                ],
            },
        ]

        if event.description:
            blocks.append({
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*Details:* {event.description[:_MAX_DESCRIPTION_LENGTH]}",
                },
            })

        return {
            "attachments": [
                {
                    "color": color,
                    "blocks": blocks,
                    "footer": "calmaint",
                }
            ]
        }

    async def _post(self, payload: dict) -> bool:
        """POST the payload to the Slack webhook URL."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._webhook_url,
                    json=payload,
                )
                response.raise_for_status()

            await logger.ainfo(
                "slack_notification_sent",
                destination="slack://***",
            )
            return True

        except httpx.HTTPStatusError as exc:
            await logger.aerror(
                "slack_notification_http_error",
                status_code=exc.response.status_code,
            )
            return False

        except httpx.RequestError:
            await logger.aerror(
                "slack_notification_request_error",
                exc_info=True,
            )
            return False
