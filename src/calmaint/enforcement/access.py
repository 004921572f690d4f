"""Exemption grants — who may stay connected during maintenance.

The grant provider is an explicit, optional dependency. Without one,
nobody is exempt: lookups fail closed and the gap is logged.
"""

from __future__ import annotations

import abc

import structlog

from calmaint.maintenance.models import Principal

logger = structlog.get_logger()

BYPASS_GRANT = "maintenance.bypass"
NOTICE_OFF_GRANT = "maintenance.notice.off"


class GrantProvider(abc.ABC):
    """Answers whether a principal holds a named grant."""

    @abc.abstractmethod
    def has_grant(self, principal: Principal, grant: str) -> bool:
        """Return True if the principal holds the grant."""


class PrincipalGrantProvider(GrantProvider):
    """Reads grants carried on the principal by the host service."""

    def has_grant(self, principal: Principal, grant: str) -> bool:
        return grant in principal.grants


class AccessPolicy:
    """Exemption decisions on top of an optional GrantProvider.

    Args:
        provider: Grant lookup, or None when the host supplies none.
    """

    def __init__(self, provider: GrantProvider | None) -> None:
        self._provider = provider

    @property
    def has_provider(self) -> bool:
        return self._provider is not None

    def _check(self, principal: Principal, grant: str) -> bool:
        if self._provider is None:
            logger.error(
                "grant_provider_missing",
                principal=principal.name,
                grant=grant,
            )
            return False
        try:
            return bool(self._provider.has_grant(principal, grant))
        except Exception:
            logger.error(
                "grant_lookup_failed",
                principal=principal.name,
                grant=grant,
                exc_info=True,
            )
            return False

    def is_exempt(self, principal: Principal) -> bool:
        """May this principal stay connected / log in during maintenance?"""
        return self._check(principal, BYPASS_GRANT)

    def is_notice_exempt(self, principal: Principal) -> bool:
        """Should this principal be spared in-game maintenance notices?"""
        return self._check(principal, NOTICE_OFF_GRANT)
