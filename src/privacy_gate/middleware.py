"""Per-request middleware — drop-in for any proxy that speaks the chat
completions message format.

One instance per request: it remembers the placeholder map between
``pre_send`` and ``post_receive`` and forgets it afterwards.

    mw = PrivacyMiddleware.create(PrivacyTier.PRIVATE)

    routed = mw.pre_send(messages)
    if routed.blocked:
        return reject(422, routed.blocked_types)

    reply = provider.complete(routed.messages)
    stored = mw.post_receive(reply)

Streaming:

    restorer = mw.stream_restorer()
    for chunk in stream:
        yield restorer.feed(chunk)
    yield restorer.flush()
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Sequence

from .audit import AuditEntry, safe_token_count
from .router import (
    CredentialPool,
    PrivacyRoutedResult,
    credential_pool_id,
    process_messages_for_privacy,
    restore_response_pii,
    route_for,
)
from .streaming import StreamingRestorer
from .types import ChatMessage, PlaceholderMap, PrivacyRoute, PrivacyTier

logger = logging.getLogger(__name__)


@dataclass
class PrivacyMiddleware:
    """Middleware that sits between the request handler and the provider."""

    tier: PrivacyTier
    pool: CredentialPool = field(default_factory=CredentialPool.shared)
    _routed: PrivacyRoutedResult | None = field(default=None, init=False, repr=False)

    @classmethod
    def create(cls, tier: PrivacyTier | str, *, pool: CredentialPool | None = None) -> "PrivacyMiddleware":
        return cls(tier=PrivacyTier(tier), pool=pool or CredentialPool.shared())

    @property
    def route(self) -> PrivacyRoute:
        return route_for(self.tier)

    @property
    def placeholder_map(self) -> PlaceholderMap:
        return self._routed.placeholder_map if self._routed else {}

    def pre_send(self, messages: Sequence[ChatMessage]) -> PrivacyRoutedResult:
        """Apply the tier policy to outbound messages."""
        self._routed = process_messages_for_privacy(self.tier, messages)
        if self._routed.blocked:
            logger.warning(
                "request blocked for tier %s: %s",
                self.tier.value, ", ".join(t.value for t in self._routed.blocked_types),
            )
        return self._routed

    def post_receive(self, text: str) -> str:
        """Restore placeholders in the model's reply."""
        return restore_response_pii(text, self.placeholder_map)

    def stream_restorer(self) -> StreamingRestorer:
        return StreamingRestorer(self.placeholder_map)

    def credential_id(self) -> str | None:
        return credential_pool_id(self.tier, self.pool)

    def audit_entry(
        self,
        *,
        user_id: str,
        provider: str,
        model: str,
        tokens_input: float | int | None = None,
        tokens_output: float | int | None = None,
        credential_pool_id: str | None = None,
        conversation_id: str | None = None,
        action: str = "chat_completion",
    ) -> AuditEntry:
        """Build the audit record for this request.  Types only, no values."""
        detected = list(self._routed.detected_types) if self._routed else []
        return AuditEntry(
            user_id=user_id,
            action=action,
            provider=provider,
            model=model,
            tokens_input=safe_token_count(tokens_input),
            tokens_output=safe_token_count(tokens_output),
            pii_detected=detected,
            credential_pool_id=credential_pool_id,
            conversation_id=conversation_id,
        )

    @property
    def stats(self) -> dict:
        return {
            "tier": self.tier.value,
            "route": self.route.to_dict(),
            "placeholders": len(self.placeholder_map),
            "detected": [t.value for t in self._routed.detected_types] if self._routed else [],
        }
