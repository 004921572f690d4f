"""Tests for calmaint.maintenance.schedule — the ScheduleBook aggregate."""

from __future__ import annotations

from datetime import timedelta

from calmaint.maintenance.models import Mode
from calmaint.maintenance.schedule import ScheduleBook
from calmaint.maintenance.state_store import StateStore
from tests.fakes import NOW, make_event


class TestScheduleBook:
    """Ordering, upsert/remove bookkeeping and snapshots."""

    def test_upsert_keeps_start_order(self, store: StateStore) -> None:
        book = ScheduleBook(store)
        book.upsert(make_event("late", NOW + timedelta(hours=3)))
        book.upsert(make_event("early", NOW + timedelta(hours=1)))
        book.upsert(make_event("mid", NOW + timedelta(hours=2)))
        assert [e.id for e in book.events] == ["early", "mid", "late"]

    def test_upsert_replaces_by_id(self, store: StateStore) -> None:
        book = ScheduleBook(store)
        old = make_event("a", NOW)
        new = make_event("a", NOW + timedelta(hours=1))
        book.upsert(old)
        assert book.upsert(new) == old
        assert book.events == [new]

    def test_upsert_refreshes_current(self, store: StateStore) -> None:
        book = ScheduleBook(store)
        old = make_event("a", NOW)
        book.upsert(old)
        book.set_mode(Mode.MAINTENANCE, old)

        new = make_event("a", NOW, minutes=120)
        book.upsert(new)
        assert book.current == new

    def test_remove_drops_markers(self, store: StateStore) -> None:
        book = ScheduleBook(store)
        book.upsert(make_event("a", NOW))
        book.mark_processed("a")
        book.mark_announced("a")

        book.remove("a")
        assert book.events == []
        assert not book.is_processed("a")
        assert not book.is_announced("a")

    def test_restore_marks_processed(self, store: StateStore) -> None:
        book = ScheduleBook(store)
        a = make_event("a", NOW + timedelta(hours=2))
        b = make_event("b", NOW + timedelta(hours=1))
        book.restore([a, b], {"a": True})

        assert [e.id for e in book.events] == ["b", "a"]
        assert book.processed_ids == {"a", "b"}
        assert book.is_announced("a")
        assert not book.is_announced("b")

    def test_snapshot(self, store: StateStore) -> None:
        book = ScheduleBook(store)
        event = make_event("a", NOW)
        book.upsert(event)
        book.mark_announced("a")
        book.set_mode(Mode.MAINTENANCE, event)

        snapshot = book.snapshot()
        assert snapshot.maintenance_mode_active is True
        assert snapshot.to_events() == [event]
        assert snapshot.notification_sent_map == {"a": True}

    async def test_persist_writes_store(self, store: StateStore) -> None:
        book = ScheduleBook(store)
        book.upsert(make_event("a", NOW))
        assert await book.persist() is True
        loaded = await store.load()
        assert loaded is not None
        assert [e.id for e in loaded.events] == ["a"]
