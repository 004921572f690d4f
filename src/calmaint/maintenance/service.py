"""MaintenanceService — wires the engine together and runs the feed poll.

Lifecycle:
    start()  recover from the state file, then poll the calendar once after
             the initial delay and every checkIntervalMinutes after that
    stop()   stop polling, cancel timers, drain in-flight callbacks
"""

from __future__ import annotations

import asyncio
from datetime import UTC, tzinfo

import structlog

from calmaint.config import Settings
from calmaint.enforcement.access import AccessPolicy, GrantProvider, PrincipalGrantProvider
from calmaint.enforcement.enforcer import Enforcer
from calmaint.enforcement.gate import AdmissionDecision, ConnectionGate, ServerListing, rewrite_listing
from calmaint.integrations.google_calendar import CalendarError, GoogleCalendarClient
from calmaint.integrations.notifier import CompositeNotifier, create_notifier
from calmaint.maintenance.formatting import ScheduleEntry, login_notice, schedule_report
from calmaint.maintenance.loader import MaintenanceConfig
from calmaint.maintenance.models import Clock, MaintenanceEvent, Mode, Principal, utcnow
from calmaint.maintenance.reconciler import ReconcileResult, Reconciler
from calmaint.maintenance.recovery import RecoveryReport, recover
from calmaint.maintenance.schedule import ScheduleBook
from calmaint.maintenance.scheduler import NotificationScheduler
from calmaint.maintenance.state_machine import MaintenanceStateMachine
from calmaint.maintenance.state_store import StateStore
from calmaint.maintenance.timers import TimerRegistry
from calmaint.observability.metrics import record_feed_poll

logger = structlog.get_logger()


class MaintenanceService:
    """The maintenance engine as one object.

    Args:
        store: Persisted snapshot location.
        config: Maintenance behaviour options.
        notifier: Outbound lifecycle notifications.
        enforcer: The host's connection surface.
        access: Exemption decisions.
        calendar: Feed client; polling is disabled when None.
        clock: Source of "now".
        timers: Timer ledger (a fresh TimerRegistry by default).
        zone: Timezone for human-facing text.
        initial_poll_delay: Seconds before the first feed poll.
        shutdown_grace: Seconds to wait for in-flight timer callbacks on stop.
    """

    def __init__(
        self,
        *,
        store: StateStore,
        config: MaintenanceConfig,
        notifier: CompositeNotifier,
        enforcer: Enforcer,
        access: AccessPolicy,
        calendar: GoogleCalendarClient | None = None,
        clock: Clock = utcnow,
        timers: TimerRegistry | None = None,
        zone: tzinfo = UTC,
        initial_poll_delay: float = 60.0,
        shutdown_grace: float = 5.0,
    ) -> None:
        self._store = store
        self._config = config
        self._calendar = calendar
        self._clock = clock
        self._zone = zone
        self._initial_poll_delay = initial_poll_delay
        self._shutdown_grace = shutdown_grace
        self._poll_task: asyncio.Task[None] | None = None

        self.enforcer = enforcer
        self.book = ScheduleBook(store)
        self.timers = timers if timers is not None else TimerRegistry(clock)
        self.gate = ConnectionGate(enforcer, access, config.kick_message_template)
        self.state_machine = MaintenanceStateMachine(
            self.book, self.timers, notifier, self.gate, clock
        )
        self.scheduler = NotificationScheduler(
            self.book,
            self.timers,
            self.state_machine,
            notifier,
            self.gate,
            config,
            clock,
            zone,
        )
        self.reconciler = Reconciler(self.book, self.scheduler, notifier, clock)

    @property
    def config(self) -> MaintenanceConfig:
        return self._config

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def has_calendar(self) -> bool:
        return self._calendar is not None

    @property
    def zone(self) -> tzinfo:
        return self._zone

    @property
    def mode(self) -> Mode:
        return self.book.mode

    @property
    def current(self) -> MaintenanceEvent | None:
        return self.book.current

    # --- lifecycle ---

    async def start(self) -> RecoveryReport:
        """Recover persisted state and start the feed poll loop."""
        report = await recover(self._store, self.book, self.state_machine, self.scheduler, self._clock)
        if self._calendar is not None:
            self._poll_task = asyncio.create_task(self._poll_loop(), name="calendar-poll")
            await logger.ainfo(
                "calendar_poll_started",
                interval_minutes=self._config.check_interval_minutes,
                initial_delay_seconds=self._initial_poll_delay,
            )
        else:
            await logger.ainfo("calendar_poll_disabled")
        return report

    async def stop(self) -> None:
        """Stop polling and shut the timer ledger down."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        await self.timers.shutdown(self._shutdown_grace)
        if self._calendar is not None:
            await self._calendar.close()
        await logger.ainfo("maintenance_service_stopped")

    async def _poll_loop(self) -> None:
        await asyncio.sleep(self._initial_poll_delay)
        while True:
            await self.poll_once()
            await asyncio.sleep(self._config.check_interval_minutes * 60)

    async def poll_once(self) -> ReconcileResult | None:
        """Fetch the feed and reconcile. Failures skip this cycle."""
        if self._calendar is None:
            return None

        try:
            events = await self._calendar.fetch_events()
        except CalendarError as exc:
            record_feed_poll("error")
            await logger.awarning("calendar_poll_failed", error=str(exc))
            return None
        except Exception:
            record_feed_poll("error")
            await logger.aerror("calendar_poll_crashed", exc_info=True)
            return None

        record_feed_poll("ok")
        return await self.reconcile(events)

    # --- engine operations ---

    async def reconcile(self, events: list[MaintenanceEvent]) -> ReconcileResult:
        return await self.reconciler.reconcile(events)

    async def arm_event(self, event: MaintenanceEvent) -> bool:
        return await self.scheduler.arm_event(event)

    async def end(self) -> bool:
        """Administrative end of maintenance. False if already Normal."""
        return await self.state_machine.end()

    def schedule(self, limit: int = 5) -> list[ScheduleEntry]:
        return schedule_report(self.book.events, self._clock(), limit)

    def next_event(self) -> MaintenanceEvent | None:
        """Earliest held event that has not started yet."""
        now = self._clock()
        for event in self.book.events:
            if event.start_time > now:
                return event
        return None

    # --- connection-time enforcement ---

    def admit(self, principal: Principal) -> AdmissionDecision:
        return self.gate.admit(principal, self.book.mode)

    async def send_login_notice(self, principal: Principal) -> str | None:
        """Tell a freshly admitted principal about the next maintenance.

        Returns the text sent, or None when nothing was sent.
        """
        if not self._config.login_notification_enabled:
            return None
        event = self.next_event()
        if event is None:
            return None
        text = login_notice(event, self._clock(), self._zone)
        if not await self.gate.notify(principal, text):
            return None
        return text

    def server_listing(self, listing: ServerListing) -> ServerListing:
        return rewrite_listing(listing, self.book.mode)


def build_service(
    settings: Settings,
    config: MaintenanceConfig,
    enforcer: Enforcer,
    *,
    grant_provider: GrantProvider | None = None,
    clock: Clock = utcnow,
) -> MaintenanceService:
    """Factory — assemble a MaintenanceService from settings.

    The calendar client is only created when an API key is configured.
    Without an explicit grant provider, grants carried on principals are used.
    """
    zone = settings.display_zone
    notifier = create_notifier(
        discord_webhook_url=str(settings.discord_webhook_url) if settings.discord_webhook_url else None,
        slack_webhook_url=str(settings.slack_webhook_url) if settings.slack_webhook_url else None,
        httpx_timeout=settings.httpx_timeout_seconds,
        zone=zone,
    )

    calendar: GoogleCalendarClient | None = None
    if settings.google_calendar_api_key:
        calendar = GoogleCalendarClient(
            api_key=settings.google_calendar_api_key,
            calendar_id=settings.google_calendar_id,
            timeout=settings.httpx_timeout_seconds,
            lookahead_days=settings.calendar_lookahead_days,
            max_results=settings.calendar_max_results,
            zone=settings.calendar_zone,
            clock=clock,
        )

    return MaintenanceService(
        store=StateStore(settings.state_file_path),
        config=config,
        notifier=notifier,
        enforcer=enforcer,
        access=AccessPolicy(grant_provider or PrincipalGrantProvider()),
        calendar=calendar,
        clock=clock,
        zone=zone,
        initial_poll_delay=settings.initial_poll_delay_seconds,
        shutdown_grace=settings.shutdown_grace_seconds,
    )
