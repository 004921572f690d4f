"""Connection gate — applies maintenance mode to principals.

- disconnect_disallowed(): kick every connected, non-exempt principal
- broadcast_notice(): in-game notice to everyone not notice-exempt
- admit(): connection-time admission while maintenance is active
- rewrite_listing(): server-list response shown during maintenance
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

import structlog

from calmaint.enforcement.access import AccessPolicy
from calmaint.enforcement.enforcer import Enforcer
from calmaint.maintenance.models import Mode, Principal

logger = structlog.get_logger()

MAINTENANCE_MOTD = "The server is under maintenance.\nPlease check back later."
MAINTENANCE_VERSION_LABEL = "Maintenance"


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    message: str | None = None


@dataclass(frozen=True)
class ServerListing:
    """The server-list (ping) response the proxy would return."""

    motd: str
    version_name: str
    protocol: int
    online_players: int
    max_players: int
    sample_players: tuple[str, ...] = field(default_factory=tuple)


def rewrite_listing(listing: ServerListing, mode: Mode) -> ServerListing:
    """Maintenance MOTD, version label, protocol -1 and 0/0 players."""
    if mode is not Mode.MAINTENANCE:
        return listing
    return replace(
        listing,
        motd=MAINTENANCE_MOTD,
        version_name=MAINTENANCE_VERSION_LABEL,
        protocol=-1,
        online_players=0,
        max_players=0,
        sample_players=(),
    )


class ConnectionGate:
    """Enforcement actions against the host's connections.

    Args:
        enforcer: The host connection surface.
        access: Exemption decisions.
        kick_message: Shown to principals removed or refused during maintenance.
    """

    def __init__(self, enforcer: Enforcer, access: AccessPolicy, kick_message: str) -> None:
        self._enforcer = enforcer
        self._access = access
        self._kick_message = kick_message

    @property
    def access(self) -> AccessPolicy:
        return self._access

    @property
    def kick_message(self) -> str:
        return self._kick_message

    async def disconnect_disallowed(self) -> int:
        """Disconnect everyone lacking the bypass grant. Returns the count."""
        removed = 0
        for principal in self._enforcer.connected_principals():
            if self._access.is_exempt(principal):
                continue
            try:
                await self._enforcer.disconnect(principal, self._kick_message)
                removed += 1
            except Exception:
                await logger.aerror(
                    "disconnect_failed", principal=principal.name, exc_info=True
                )
        await logger.ainfo("disallowed_principals_disconnected", count=removed)
        return removed

    async def broadcast_notice(self, text: str) -> int:
        """Message everyone without the notice-off grant. Returns the count."""
        sent = 0
        for principal in self._enforcer.connected_principals():
            if self._access.is_notice_exempt(principal):
                continue
            try:
                await self._enforcer.send_message(principal, text)
                sent += 1
            except Exception:
                await logger.aerror("notice_failed", principal=principal.name, exc_info=True)
        return sent

    async def notify(self, principal: Principal, text: str) -> bool:
        """Message a single principal unless they opted out of notices."""
        if self._access.is_notice_exempt(principal):
            return False
        await self._enforcer.send_message(principal, text)
        return True

    def admit(self, principal: Principal, mode: Mode) -> AdmissionDecision:
        """Decide whether a connecting principal may join."""
        if mode is not Mode.MAINTENANCE:
            return AdmissionDecision(allowed=True)
        if self._access.is_exempt(principal):
            return AdmissionDecision(allowed=True)
        return AdmissionDecision(allowed=False, message=self._kick_message)
