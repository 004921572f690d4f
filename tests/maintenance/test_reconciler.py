"""Tests for calmaint.maintenance.reconciler — feed diffing."""

from __future__ import annotations

from datetime import timedelta

from calmaint.maintenance.models import Mode
from calmaint.maintenance.service import MaintenanceService
from calmaint.maintenance.state_store import StateStore
from tests.fakes import NOW, RecordingNotifier, make_event


class TestReconcile:
    """reconcile() — add, update, cancel and no-op outcomes."""

    async def test_adds_every_new_event(
        self, service: MaintenanceService, recorder: RecordingNotifier
    ) -> None:
        a = make_event("a", NOW + timedelta(hours=5))
        b = make_event("b", NOW + timedelta(hours=1))
        result = await service.reconcile([a, b])

        assert sorted(result.added) == ["a", "b"]
        assert service.book.events == [b, a]
        assert sorted(recorder.kinds()) == ["scheduled", "scheduled"]
        assert service.timers.armed_event_ids() == {"a", "b"}

    async def test_same_batch_is_a_no_op(
        self, service: MaintenanceService, recorder: RecordingNotifier
    ) -> None:
        a = make_event("a", NOW + timedelta(hours=5))
        await service.reconcile([a])
        result = await service.reconcile([a])

        assert result.unchanged == ["a"]
        assert not result.changed
        assert recorder.kinds() == ["scheduled"]

    async def test_missing_event_cancelled(
        self, service: MaintenanceService, recorder: RecordingNotifier, store: StateStore
    ) -> None:
        a = make_event("a", NOW + timedelta(hours=5))
        b = make_event("b", NOW + timedelta(hours=6))
        await service.reconcile([a, b])

        result = await service.reconcile([a])

        assert result.cancelled == ["b"]
        assert service.book.events == [a]
        assert recorder.kinds("b") == ["scheduled", "cancelled"]
        assert service.timers.armed("b") == {}
        assert not service.book.is_processed("b")
        state = await store.load()
        assert state is not None
        assert [e.id for e in state.events] == ["a"]
        assert "b" not in state.notification_sent_map

    async def test_ended_event_not_cancelled(
        self, service: MaintenanceService, recorder: RecordingNotifier
    ) -> None:
        a = make_event("a", NOW + timedelta(minutes=1), minutes=2)
        await service.reconcile([a])
        await service.timers.advance(minutes=10)

        result = await service.reconcile([])

        assert result.cancelled == []
        assert service.book.get("a") == a
        assert "cancelled" not in recorder.kinds()

    async def test_update_moves_start(
        self, service: MaintenanceService, recorder: RecordingNotifier
    ) -> None:
        original = make_event("a", NOW + timedelta(hours=2))
        moved = make_event("a", NOW + timedelta(hours=3))
        await service.reconcile([original])

        result = await service.reconcile([moved])

        assert result.updated == ["a"]
        assert recorder.kinds() == ["scheduled", "updated"]
        assert recorder.updates == [(original, moved)]
        assert service.book.events == [moved]
        assert service.timers.armed("a")["start"] == moved.start_time

        # Old start time passes without effect
        await service.timers.advance(hours=2, minutes=30)
        assert service.mode is Mode.NORMAL
        await service.timers.advance(minutes=30)
        assert service.mode is Mode.MAINTENANCE

        # Feeding the moved copy again changes nothing
        await service.reconcile([moved])
        assert recorder.kinds().count("updated") == 1

    async def test_title_change_is_an_update(
        self, service: MaintenanceService, recorder: RecordingNotifier
    ) -> None:
        await service.reconcile([make_event("a", NOW + timedelta(hours=2), title="Patch")])
        result = await service.reconcile([make_event("a", NOW + timedelta(hours=2), title="Patch v2")])

        assert result.updated == ["a"]
        assert service.book.get("a").title == "Patch v2"

    async def test_stale_fetched_event(self, service: MaintenanceService) -> None:
        result = await service.reconcile([make_event("old", NOW - timedelta(hours=3))])
        assert result.stale == ["old"]
        assert service.book.events == []

    async def test_duplicate_ids_last_wins(self, service: MaintenanceService) -> None:
        first = make_event("a", NOW + timedelta(hours=2), title="first")
        last = make_event("a", NOW + timedelta(hours=4), title="last")
        result = await service.reconcile([first, last])

        assert result.added == ["a"]
        assert service.book.events == [last]

    async def test_cancelling_active_event_keeps_maintenance(
        self, service: MaintenanceService, recorder: RecordingNotifier, store: StateStore
    ) -> None:
        """An in-progress event removed from the feed is cancelled; ending stays manual."""
        a = make_event("a", NOW + timedelta(minutes=1), minutes=60)
        await service.reconcile([a])
        await service.timers.advance(minutes=2)

        result = await service.reconcile([])

        assert result.cancelled == ["a"]
        assert service.mode is Mode.MAINTENANCE

        assert await service.end() is True
        assert recorder.kinds() == ["scheduled", "started", "cancelled", "ended"]
        assert await store.exists() is False


class TestExpiry:
    """Ended events that never became current are dropped without notice."""

    async def test_ignored_overlap_expires(
        self, service: MaintenanceService, recorder: RecordingNotifier
    ) -> None:
        a = make_event("a", NOW + timedelta(hours=1), minutes=60)
        b = make_event("b", NOW + timedelta(hours=1, minutes=10), minutes=60)
        await service.reconcile([a, b])
        await service.timers.advance(hours=2, minutes=30)
        assert service.current == a

        result = await service.reconcile([])

        assert result.expired == ["b"]
        assert result.cancelled == []
        assert service.book.events == [a]
        assert recorder.kinds("b") == ["scheduled"]

    async def test_missed_start_expires(
        self, service: MaintenanceService, recorder: RecordingNotifier, store: StateStore
    ) -> None:
        missed = make_event("m", NOW - timedelta(minutes=5), minutes=35)
        result = await service.reconcile([missed])
        assert result.added == ["m"]
        assert service.mode is Mode.NORMAL

        await service.timers.advance(minutes=40)
        result = await service.reconcile([])

        assert result.expired == ["m"]
        assert service.book.events == []
        assert not service.book.is_processed("m")
        assert recorder.kinds("m") == ["scheduled"]
        assert await store.exists() is False

    async def test_future_events_survive_expiry(
        self, service: MaintenanceService, store: StateStore
    ) -> None:
        missed = make_event("m", NOW - timedelta(minutes=5), minutes=35)
        later = make_event("l", NOW + timedelta(days=1))
        await service.reconcile([missed, later])
        await service.timers.advance(minutes=40)

        result = await service.reconcile([later])

        assert result.expired == ["m"]
        assert result.unchanged == ["l"]
        state = await store.load()
        assert state is not None
        assert [e.id for e in state.events] == ["l"]
