"""Tests for calmaint.integrations.notifier — composite dispatch and factory."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from calmaint.integrations.discord import DiscordNotifier
from calmaint.integrations.notifier import CompositeNotifier, create_notifier
from calmaint.integrations.slack import SlackNotifier
from calmaint.maintenance.models import MaintenanceEvent, NotificationKind
from tests.fakes import RecordingNotifier, make_event

EVENT = make_event("a", datetime(2026, 10, 17, 21, 0, tzinfo=UTC))


class TestCompositeNotifier:
    """CompositeNotifier — fan-out and failure isolation."""

    @pytest.mark.parametrize(
        "kind",
        [
            NotificationKind.SCHEDULED,
            NotificationKind.STARTED,
            NotificationKind.ENDED,
            NotificationKind.CANCELLED,
        ],
    )
    async def test_dispatch_by_kind(self, kind: NotificationKind) -> None:
        stub = RecordingNotifier()
        outcomes = await CompositeNotifier([stub]).notify(kind, EVENT)
        assert outcomes == [True]
        assert stub.calls == [(kind.value, "a")]

    async def test_updated_passes_both_versions(self) -> None:
        stub = RecordingNotifier()
        newer = MaintenanceEvent("a", "New", "", EVENT.start_time, EVENT.end_time)
        await CompositeNotifier([stub]).notify(NotificationKind.UPDATED, newer, previous=EVENT)
        assert stub.updates == [(EVENT, newer)]

    async def test_updated_requires_previous(self) -> None:
        with pytest.raises(ValueError):
            await CompositeNotifier([RecordingNotifier()]).notify(NotificationKind.UPDATED, EVENT)

    async def test_multiple_backends(self) -> None:
        stub1, stub2 = RecordingNotifier(), RecordingNotifier()
        outcomes = await CompositeNotifier([stub1, stub2]).notify(NotificationKind.STARTED, EVENT)
        assert outcomes == [True, True]
        assert stub1.calls == stub2.calls == [("started", "a")]

    async def test_failing_backend_returns_false(self) -> None:
        """A failing backend returns False but doesn't block others."""
        stub = RecordingNotifier()
        outcomes = await CompositeNotifier([RecordingNotifier(fail=True), stub]).notify(
            NotificationKind.SCHEDULED, EVENT
        )
        assert outcomes == [False, True]
        assert len(stub.calls) == 1

    async def test_no_backends(self) -> None:
        assert await CompositeNotifier([]).notify(NotificationKind.SCHEDULED, EVENT) == []

    async def test_backends_property_is_a_copy(self) -> None:
        stub = RecordingNotifier()
        composite = CompositeNotifier([stub])
        backends = composite.backends
        backends.clear()
        assert composite.backends == [stub]


class TestCreateNotifier:
    """create_notifier factory function."""

    def test_no_urls_empty_composite(self) -> None:
        assert create_notifier().backends == []

    def test_discord_only(self) -> None:
        composite = create_notifier(discord_webhook_url="https://discord.com/api/webhooks/test")
        assert len(composite.backends) == 1
        assert isinstance(composite.backends[0], DiscordNotifier)

    def test_both_configured(self) -> None:
        composite = create_notifier(
            discord_webhook_url="https://discord.com/api/webhooks/test",
            slack_webhook_url="https://hooks.slack.com/services/T/B/X",
        )
        assert [type(b) for b in composite.backends] == [DiscordNotifier, SlackNotifier]

    def test_http_url_rejected(self) -> None:
        with pytest.raises(ValueError, match="HTTPS"):
            create_notifier(slack_webhook_url="http://hooks.slack.com/services/T/B/X")
