"""Tests for calmaint.maintenance.scheduler — arming single events."""

from __future__ import annotations

from datetime import timedelta

from calmaint.enforcement.access import BYPASS_GRANT, NOTICE_OFF_GRANT
from calmaint.enforcement.enforcer import ConnectionRegistry
from calmaint.maintenance.loader import MaintenanceConfig
from calmaint.maintenance.models import Mode, Principal
from calmaint.maintenance.service import MaintenanceService
from calmaint.maintenance.state_store import StateStore
from tests.fakes import NOW, RecordingNotifier, make_event

ALICE = Principal("u1", "alice")
BOB = Principal("u2", "bob", frozenset({NOTICE_OFF_GRANT}))
CAROL = Principal("u3", "carol", frozenset({BYPASS_GRANT}))


class TestArmEvent:
    """arm_event() — announcement, stale rejection and timer set."""

    async def test_arms_future_offsets_notice_and_start(self, service: MaintenanceService) -> None:
        event = make_event("a", NOW + timedelta(hours=2))
        assert await service.arm_event(event) is True

        # 360..120 minutes before start are not in the future any more
        assert set(service.timers.armed("a")) == {
            "offset:60", "offset:30", "offset:20", "offset:10",
            "offset:5", "offset:3", "offset:1", "notice:30s", "start",
        }
        assert service.timers.armed("a")["start"] == event.start_time
        assert service.timers.armed("a")["notice:30s"] == event.start_time - timedelta(seconds=30)

    async def test_announces_once(
        self, service: MaintenanceService, recorder: RecordingNotifier
    ) -> None:
        event = make_event("a", NOW + timedelta(hours=2))
        await service.arm_event(event)
        assert await service.arm_event(event) is False
        assert recorder.kinds() == ["scheduled"]

    async def test_announcement_marker_persisted(
        self, service: MaintenanceService, store: StateStore
    ) -> None:
        await service.arm_event(make_event("a", NOW + timedelta(hours=2)))
        state = await store.load()
        assert state is not None
        assert state.notification_sent_map == {"a": True}
        assert [e.id for e in state.events] == ["a"]

    async def test_stale_event_rejected(
        self, service: MaintenanceService, recorder: RecordingNotifier
    ) -> None:
        event = make_event("a", NOW - timedelta(hours=2), minutes=60)
        assert await service.arm_event(event) is False
        assert service.book.events == []
        assert recorder.calls == []

    async def test_changed_copy_supersedes(
        self, service: MaintenanceService, recorder: RecordingNotifier
    ) -> None:
        await service.arm_event(make_event("a", NOW + timedelta(hours=2)))
        moved = make_event("a", NOW + timedelta(hours=3))

        assert await service.arm_event(moved) is True
        assert service.book.events == [moved]
        assert service.timers.armed("a")["start"] == moved.start_time
        assert recorder.kinds() == ["scheduled"]

    async def test_start_within_grace_fires_immediately(
        self, service: MaintenanceService, recorder: RecordingNotifier
    ) -> None:
        event = make_event("a", NOW - timedelta(seconds=30))
        await service.arm_event(event)

        assert service.mode is Mode.MAINTENANCE
        assert service.current == event
        assert recorder.kinds() == ["scheduled", "started"]
        assert "start" not in service.timers.armed("a")

    async def test_start_beyond_grace_is_missed(
        self, service: MaintenanceService, recorder: RecordingNotifier
    ) -> None:
        await service.arm_event(make_event("a", NOW - timedelta(seconds=90)))

        assert service.mode is Mode.NORMAL
        assert recorder.kinds() == ["scheduled"]
        assert service.timers.armed("a") == {}

    async def test_respects_config(self, make_service) -> None:
        service = make_service(
            config=MaintenanceConfig(notification_offsets_minutes=[10], enable_30_second_notice=False)
        )
        await service.arm_event(make_event("a", NOW + timedelta(hours=2)))
        assert set(service.timers.armed("a")) == {"offset:10", "start"}

    async def test_failing_notifier_does_not_block(self, make_service) -> None:
        service = make_service(notifier=RecordingNotifier(fail=True))
        assert await service.arm_event(make_event("a", NOW + timedelta(minutes=5))) is True

        await service.timers.advance(minutes=5)
        assert service.mode is Mode.MAINTENANCE


class TestTimersFiring:
    """Pre-maintenance notices and the start trigger reaching principals."""

    async def test_notices_then_start(
        self, service: MaintenanceService, registry: ConnectionRegistry, recorder: RecordingNotifier
    ) -> None:
        for principal in (ALICE, BOB, CAROL):
            registry.register(principal)
        event = make_event("a", NOW + timedelta(hours=2))
        await service.arm_event(event)

        await service.timers.advance(hours=1)
        items = registry.drain_outbox()
        assert [(i.action, i.principal.name) for i in items] == [
            ("message", "alice"), ("message", "carol"),
        ]
        assert "Maintenance starts in 1 hour." in items[0].message

        await service.timers.advance(minutes=59, seconds=30)
        notices = [i.message for i in registry.drain_outbox() if i.principal == ALICE]
        assert len(notices) == 7
        assert "starts in 30 seconds" in notices[-1]

        await service.timers.advance(seconds=30)
        assert service.mode is Mode.MAINTENANCE
        kicked = {i.principal.name for i in registry.drain_outbox() if i.action == "disconnect"}
        assert kicked == {"alice", "bob"}
        assert CAROL.id in registry
        assert recorder.kinds() == ["scheduled", "started"]
