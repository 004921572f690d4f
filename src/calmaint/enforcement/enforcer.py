"""Enforcement surface — the host's connected principals.

Enforcer is what the engine needs from the host: list who is connected,
disconnect someone, send someone a message. ConnectionRegistry is the
in-memory implementation behind the gate HTTP routes: the proxy reports
logins/logouts and drains the queued disconnects and messages.
"""

from __future__ import annotations

import abc
from collections import deque
from dataclasses import dataclass

import structlog

from calmaint.maintenance.models import Principal

logger = structlog.get_logger()

DEFAULT_OUTBOX_LIMIT = 1000


class Enforcer(abc.ABC):
    """Abstract base for the host's connection surface."""

    @abc.abstractmethod
    def connected_principals(self) -> list[Principal]:
        """Return the principals currently connected."""

    @abc.abstractmethod
    async def disconnect(self, principal: Principal, message: str) -> None:
        """Disconnect a principal, showing them message."""

    @abc.abstractmethod
    async def send_message(self, principal: Principal, message: str) -> None:
        """Deliver a chat/system message to a connected principal."""


@dataclass(frozen=True)
class OutboxItem:
    """An action queued for the proxy to carry out."""

    action: str  # "disconnect" | "message"
    principal: Principal
    message: str


class ConnectionRegistry(Enforcer):
    """Dict-backed connection registry with a bounded outbox for the proxy.

    When the outbox is full the oldest queued action is dropped. A
    disconnect discards messages still queued for that principal.

    Args:
        outbox_limit: Maximum number of queued actions.
    """

    def __init__(self, outbox_limit: int = DEFAULT_OUTBOX_LIMIT) -> None:
        self._connected: dict[str, Principal] = {}
        self._outbox: deque[OutboxItem] = deque(maxlen=outbox_limit)

    def register(self, principal: Principal) -> None:
        self._connected[principal.id] = principal

    def unregister(self, principal_id: str) -> Principal | None:
        return self._connected.pop(principal_id, None)

    def connected_principals(self) -> list[Principal]:
        return list(self._connected.values())

    async def disconnect(self, principal: Principal, message: str) -> None:
        self._connected.pop(principal.id, None)
        self._outbox = deque(
            (item for item in self._outbox if item.principal.id != principal.id),
            maxlen=self._outbox.maxlen,
        )
        await self._enqueue(OutboxItem("disconnect", principal, message))
        await logger.ainfo("principal_disconnected", principal=principal.name)

    async def send_message(self, principal: Principal, message: str) -> None:
        if principal.id not in self._connected:
            return
        await self._enqueue(OutboxItem("message", principal, message))

    async def _enqueue(self, item: OutboxItem) -> None:
        if len(self._outbox) == self._outbox.maxlen:
            dropped = self._outbox[0]
            await logger.awarning(
                "outbox_full_dropping",
                action=dropped.action,
                principal=dropped.principal.name,
            )
        self._outbox.append(item)

    def drain_outbox(self) -> list[OutboxItem]:
        """Hand over and forget every queued action."""
        items = list(self._outbox)
        self._outbox.clear()
        return items

    def __len__(self) -> int:
        return len(self._connected)

    def __contains__(self, principal_id: str) -> bool:
        return principal_id in self._connected
