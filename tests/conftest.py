"""Shared test fixtures for the calmaint test suite.

Time is fully controlled: a FakeClock drives "now" and a ManualTimerRegistry
fires armed timers only when a test advances the clock.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from calmaint.enforcement.access import AccessPolicy, PrincipalGrantProvider
from calmaint.enforcement.enforcer import ConnectionRegistry
from calmaint.integrations.notifier import CompositeNotifier
from calmaint.maintenance.loader import MaintenanceConfig
from calmaint.maintenance.service import MaintenanceService
from calmaint.maintenance.state_store import StateStore
from tests.fakes import NOW, FakeCalendar, FakeClock, ManualTimerRegistry, RecordingNotifier


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def state_path(tmp_path: Path) -> str:
    return str(tmp_path / "data" / "maintenance-state.json")


@pytest.fixture
def store(state_path: str) -> StateStore:
    return StateStore(state_path)


@pytest.fixture
def recorder() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def maintenance_config() -> MaintenanceConfig:
    return MaintenanceConfig()


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def make_service(store, recorder, registry, clock, maintenance_config):
    """Factory for MaintenanceService instances sharing the test's store and clock.

    Each call gets its own timer registry, so a second call models a restart.
    """

    def _make(
        *,
        notifier: RecordingNotifier | None = None,
        config: MaintenanceConfig | None = None,
        calendar: FakeCalendar | None = None,
        initial_poll_delay: float = 60.0,
    ) -> MaintenanceService:
        return MaintenanceService(
            store=store,
            config=config or maintenance_config,
            notifier=CompositeNotifier([notifier or recorder]),
            enforcer=registry,
            access=AccessPolicy(PrincipalGrantProvider()),
            calendar=calendar,  # type: ignore[arg-type]
            clock=clock,
            timers=ManualTimerRegistry(clock),
            initial_poll_delay=initial_poll_delay,
            shutdown_grace=0.5,
        )

    return _make


@pytest.fixture
def service(make_service) -> MaintenanceService:
    return make_service()
