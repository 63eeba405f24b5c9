"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum


class PIIType(str, Enum):
    """Closed set of PII categories.

    ``NAME`` and ``ADDRESS`` are part of the vocabulary but have no
    detector: free-form entities need NLP, which a pattern scanner
    can't do.  They are marked ``supported = False`` so callers can see
    the gap without reading the pattern table.
    """

    EMAIL = "email"
    PHONE = "phone"
    SSN = "ssn"
    CREDIT_CARD = "creditCard"
    API_KEY = "apiKey"
    NAME = "name"
    ADDRESS = "address"

    @property
    def supported(self) -> bool:
        return self not in _UNSUPPORTED

    @property
    def placeholder_prefix(self) -> str:
        return self.value.upper()   # "creditCard" → "CREDITCARD"

    @property
    def label(self) -> str:
        return _LABELS[self]


_UNSUPPORTED = frozenset({PIIType.NAME, PIIType.ADDRESS})

_LABELS = {
    PIIType.EMAIL: "Email address",
    PIIType.PHONE: "Phone number",
    PIIType.SSN: "Social Security Number",
    PIIType.CREDIT_CARD: "Credit card number",
    PIIType.API_KEY: "API key or secret",
    PIIType.NAME: "Personal name",
    PIIType.ADDRESS: "Physical address",
}


class PrivacyTier(str, Enum):
    """Subscription-linked privacy level."""

    COMMUNITY = "community"
    PRIVATE = "private"
    SOVEREIGN = "sovereign"


# placeholder → original value, e.g. "[EMAIL_1]" → "john@example.com"
PlaceholderMap = dict[str, str]

# OpenAI-style chat turn: {"role": "user", "content": "..."}
ChatMessage = dict[str, str]


@dataclass(frozen=True, slots=True)
class Position:
    """Half-open range into the original text."""
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class Detection:
    """A single detected PII value."""
    type: PIIType
    original_value: str
    position: Position
    sanitized_value: str = ""     # filled in by the redactor


@dataclass(slots=True)
class SanitizationResult:
    """Result of sanitizing one piece of text."""
    sanitized_text: str
    placeholder_map: PlaceholderMap = field(default_factory=dict)
    detections: list[Detection] = field(default_factory=list)
    blocked: bool = False
    blocked_types: list[PIIType] = field(default_factory=list)


@dataclass(slots=True)
class MessageSanitizationResult:
    """Result of sanitizing a batch of chat turns."""
    messages: list[ChatMessage]
    placeholder_map: PlaceholderMap = field(default_factory=dict)
    detected_types: list[PIIType] = field(default_factory=list)
    blocked: bool = False
    blocked_types: list[PIIType] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PrivacyRoute:
    """Where and how a tier's conversation data is handled."""
    store: str                          # "server" | "local"
    anonymize: bool
    pool_credentials: bool | None = None
    encrypt: bool | None = None

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {"store": self.store, "anonymize": self.anonymize}
        if self.pool_credentials is not None:
            out["poolCredentials"] = self.pool_credentials
        if self.encrypt is not None:
            out["encrypt"] = self.encrypt
        return out
