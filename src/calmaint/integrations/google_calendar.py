"""Async Google Calendar client — the maintenance event feed.

Lists events in [now, now + lookahead) through the Calendar v3 REST API
with an API key, retrying with exponential backoff. Items that cannot be
turned into a MaintenanceEvent are dropped with a warning; the rest of
the batch is returned.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, time, timedelta, tzinfo
from urllib.parse import quote

import httpx
import structlog

from calmaint.maintenance.models import Clock, MaintenanceEvent, utcnow

logger = structlog.get_logger()

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"


class CalendarError(Exception):
    """Raised when the calendar feed cannot be fetched."""


def _parse_bound(bound: dict | None, zone: tzinfo | None) -> datetime | None:
    """Turn a start/end object into an aware datetime.

    Timed entries carry ``dateTime`` (RFC 3339). All-day entries carry
    ``date`` and are pinned to local midnight.
    """
    if not bound:
        return None

    if bound.get("dateTime"):
        value = datetime.fromisoformat(bound["dateTime"])
        if value.tzinfo is None:
            return None
        return value

    if bound.get("date"):
        day = date.fromisoformat(bound["date"])
        midnight = datetime.combine(day, time.min)
        if zone is None:
            return midnight.astimezone()
        return midnight.replace(tzinfo=zone)

    return None


def parse_event(item: dict, zone: tzinfo | None = None) -> MaintenanceEvent | None:
    """Convert one API item to a MaintenanceEvent, or None if malformed."""
    summary = item.get("summary") or ""
    try:
        start = _parse_bound(item.get("start"), zone)
        end = _parse_bound(item.get("end"), zone)
    except (TypeError, ValueError):
        start = end = None

    if not item.get("id") or start is None or end is None:
        logger.warning("calendar_event_invalid_time", summary=summary, event_id=item.get("id"))
        return None

    try:
        return MaintenanceEvent(
            id=item["id"],
            title=summary,
            description=item.get("description") or "",
            start_time=start,
            end_time=end,
        )
    except ValueError as exc:
        logger.warning("calendar_event_rejected", summary=summary, reason=str(exc))
        return None


class GoogleCalendarClient:
    """Fetches upcoming maintenance events from one calendar.

    Args:
        api_key: Google API key with Calendar API access.
        calendar_id: Calendar identifier (e.g. "abcd@group.calendar.google.com").
        timeout: HTTP request timeout in seconds.
        lookahead_days: Size of the fetched window.
        max_results: Page size requested from the API.
        zone: Timezone all-day entries are pinned to (None = system local).
        max_retries: Attempts before giving up with CalendarError.
        clock: Source of "now".
    """

    def __init__(
        self,
        api_key: str,
        calendar_id: str = "primary",
        *,
        timeout: float = 10.0,
        lookahead_days: int = 30,
        max_results: int = 10,
        zone: tzinfo | None = None,
        max_retries: int = 3,
        clock: Clock = utcnow,
    ) -> None:
        self._api_key = api_key
        self._calendar_id = calendar_id
        self._timeout = timeout
        self._lookahead = timedelta(days=lookahead_days)
        self._max_results = max_results
        self._zone = zone
        self._max_retries = max_retries
        self._clock = clock
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=CALENDAR_API_BASE,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, path: str, params: dict) -> dict:
        """GET with retry and exponential backoff."""
        client = await self._get_client()
        last_error: Exception | None = None

        for attempt in range(self._max_retries):
            try:
                response = await client.get(path, params=params)
                response.raise_for_status()
                return response.json()
            except (httpx.HTTPError, ValueError) as exc:
                last_error = exc
                await logger.awarning(
                    "calendar_request_failed",
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                    error_type=type(exc).__name__,
                )
                if attempt < self._max_retries - 1:
                    await asyncio.sleep(2 ** attempt)

        raise CalendarError(
            f"Calendar request failed after {self._max_retries} retries: {last_error}"
        )

    async def fetch_events(self) -> list[MaintenanceEvent]:
        """Events visible in [now, now + lookahead), minus those already over.

        Raises:
            CalendarError: If the API cannot be reached after retries.
        """
        now = self._clock()
        params = {
            "key": self._api_key,
            "timeMin": now.isoformat(),
            "timeMax": (now + self._lookahead).isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": self._max_results,
        }
        path = f"/calendars/{quote(self._calendar_id, safe='')}/events"
        data = await self._request(path, params)

        events: list[MaintenanceEvent] = []
        for item in data.get("items", []):
            event = parse_event(item, self._zone)
            if event is None or event.has_ended(now):
                continue
            events.append(event)

        await logger.ainfo(
            "calendar_events_fetched",
            item_count=len(data.get("items", [])),
            event_count=len(events),
        )
        return events
