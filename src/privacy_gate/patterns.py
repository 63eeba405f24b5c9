"""PII detector — regex patterns for structured PII.

One pattern per supported type, each scanned independently over the
whole text.  Matches from different types are NOT deduplicated: a
16-digit card number can also contain a phone-shaped run, and both are
reported.  The redactor decides what to do with overlaps.
"""

from __future__ import annotations
import re
from typing import Iterable

from .types import Detection, PIIType, Position

# Each entry: PIIType → compiled regex, or None for types with no detector
_PATTERNS: dict[PIIType, re.Pattern | None] = {
    PIIType.EMAIL: re.compile(
        r"\b[A-Z0-9._%+\-]+@[A-Z0-9.\-]+\.[A-Z]{2,}\b", re.IGNORECASE
    ),
    PIIType.PHONE: re.compile(
        r"\b(?:\+\d{1,3}[\-.\s]?)?\(?\d{3}\)?[\-.\s]?\d{3}[\-.\s]?\d{4}\b"
    ),
    PIIType.SSN: re.compile(
        r"\b\d{3}-\d{2}-\d{4}\b"
    ),
    PIIType.CREDIT_CARD: re.compile(
        r"\b\d{4}[\-\s]?\d{4}[\-\s]?\d{4}[\-\s]?\d{4}\b"
    ),
    PIIType.API_KEY: re.compile(
        r"\b(?:sk-|pk_|api[_\-]?key|secret[_\-]?key)[a-zA-Z0-9_\-]{20,}\b",
        re.IGNORECASE,
    ),
    # Names and addresses need NLP
    PIIType.NAME: None,
    PIIType.ADDRESS: None,
}

# Too sensitive to send at all; any hit blocks the whole message
BLOCK_TYPES: frozenset[PIIType] = frozenset(
    {PIIType.SSN, PIIType.CREDIT_CARD, PIIType.API_KEY}
)

# Replaced with a reversible placeholder
SANITIZE_TYPES: frozenset[PIIType] = frozenset({PIIType.EMAIL, PIIType.PHONE})


def detect_pii(text: str) -> list[Detection]:
    """Scan text for every supported PII type.

    Returns detections sorted by start offset (longer span first on a
    tie).  ``sanitized_value`` is left empty.
    """
    detections: list[Detection] = []
    if not text:
        return detections

    for pii_type, pattern in _PATTERNS.items():
        if pattern is None:
            continue
        for m in pattern.finditer(text):
            detections.append(Detection(
                type=pii_type,
                original_value=m.group(),
                position=Position(m.start(), m.end()),
            ))

    detections.sort(key=lambda d: (d.position.start, -d.position.length))
    return detections


def should_block(detections: Iterable[Detection]) -> bool:
    return any(d.type in BLOCK_TYPES for d in detections)


def should_sanitize(detection: Detection) -> bool:
    return detection.type in SANITIZE_TYPES


def blocked_types(detections: Iterable[Detection]) -> list[PIIType]:
    """Distinct block-type categories, in order of first appearance."""
    seen: list[PIIType] = []
    for d in detections:
        if d.type in BLOCK_TYPES and d.type not in seen:
            seen.append(d.type)
    return seen


def pii_type_label(pii_type: PIIType | str) -> str:
    return PIIType(pii_type).label


def supported_types() -> list[PIIType]:
    return [t for t, p in _PATTERNS.items() if p is not None]
