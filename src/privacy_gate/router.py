"""Privacy tier policy — decides where a request's data goes.

    tier        store   anonymize  pool_credentials  encrypt
    community   server  no         -                 -
    private     server  yes        yes               -
    sovereign   local   yes        -                 yes
"""

from __future__ import annotations
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .redactor import restore_pii, sanitize_messages
from .types import ChatMessage, PIIType, PlaceholderMap, PrivacyRoute, PrivacyTier

logger = logging.getLogger(__name__)


_ROUTES: dict[PrivacyTier, PrivacyRoute] = {
    PrivacyTier.COMMUNITY: PrivacyRoute(store="server", anonymize=False),
    PrivacyTier.PRIVATE: PrivacyRoute(store="server", anonymize=True, pool_credentials=True),
    PrivacyTier.SOVEREIGN: PrivacyRoute(store="local", anonymize=True, encrypt=True),
}


def route_for(tier: PrivacyTier | str) -> PrivacyRoute:
    """Resolve the route for a tier.  Raises ValueError on an unknown string."""
    return _ROUTES[PrivacyTier(tier)]


@dataclass(slots=True)
class PrivacyRoutedResult:
    """Outbound messages plus everything needed to finish the round trip."""
    messages: list[ChatMessage]
    route: PrivacyRoute
    placeholder_map: PlaceholderMap = field(default_factory=dict)
    detected_types: list[PIIType] = field(default_factory=list)
    blocked: bool = False
    blocked_types: list[PIIType] = field(default_factory=list)


def process_messages_for_privacy(
    tier: PrivacyTier | str,
    messages: Sequence[ChatMessage],
) -> PrivacyRoutedResult:
    """Apply the tier's policy to an outbound batch."""
    route = route_for(tier)

    if not route.anonymize:
        return PrivacyRoutedResult(messages=list(messages), route=route)

    result = sanitize_messages(messages)
    if result.blocked:
        return PrivacyRoutedResult(
            messages=list(messages),
            route=route,
            blocked=True,
            blocked_types=result.blocked_types,
        )

    return PrivacyRoutedResult(
        messages=result.messages,
        route=route,
        placeholder_map=result.placeholder_map,
        detected_types=result.detected_types,
    )


def restore_response_pii(response: str, placeholder_map: PlaceholderMap) -> str:
    if not placeholder_map:
        return response
    return restore_pii(response, placeholder_map)


def should_store_on_server(tier: PrivacyTier | str) -> bool:
    return route_for(tier).store == "server"


def should_log_to_audit_trail(tier: PrivacyTier | str) -> bool:
    # Every tier is audited; entries only ever carry PII types.
    return True


class CredentialPool:
    """Round-robin over upstream credential ids.

    Spreads private-tier requests across accounts so no single
    credential can be linked to a user's whole history.
    """

    __slots__ = ("_ids", "_cycle", "_lock")

    def __init__(self, ids: Iterable[str]) -> None:
        self._ids = tuple(ids)
        if not self._ids:
            raise ValueError("credential pool needs at least one id")
        self._cycle = itertools.cycle(self._ids)
        self._lock = threading.Lock()

    @classmethod
    def default(cls, size: int = 10) -> "CredentialPool":
        return cls(f"pool-{i}" for i in range(size))

    @classmethod
    def shared(cls) -> "CredentialPool":
        """Process-wide default pool, so rotation survives across requests."""
        return _SHARED_POOL

    def next_id(self) -> str:
        with self._lock:
            return next(self._cycle)

    @property
    def ids(self) -> tuple[str, ...]:
        return self._ids


_SHARED_POOL = CredentialPool.default()


def credential_pool_id(tier: PrivacyTier | str, pool: CredentialPool) -> str | None:
    """Next pooled credential for tiers that pool, else None."""
    if route_for(tier).pool_credentials:
        return pool.next_id()
    return None
