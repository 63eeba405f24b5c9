"""Redactor — the main API.  Detect, then block or substitute.

Usage:
    from privacy_gate import sanitize_text, restore_pii

    result = sanitize_text("Email me at john@acme.com")
    print(result.sanitized_text)       # "Email me at [EMAIL_1]"

    reply = "Sure, I'll write to [EMAIL_1]."
    print(restore_pii(reply, result.placeholder_map))
    # "Sure, I'll write to john@acme.com."

Block types (SSN, credit card, API key) are never partially redacted:
one hit and the caller gets ``blocked=True`` with the text untouched.
"""

from __future__ import annotations
import dataclasses
import logging
from typing import Sequence

from .patterns import blocked_types, detect_pii, should_block, should_sanitize
from .types import (
    ChatMessage,
    Detection,
    MessageSanitizationResult,
    PIIType,
    PlaceholderMap,
    Position,
    SanitizationResult,
)
from .vault import PlaceholderVault, restore_placeholders

logger = logging.getLogger(__name__)


def sanitize_text(text: str) -> SanitizationResult:
    """Sanitize a single piece of text with a fresh placeholder vault."""
    vault = PlaceholderVault()
    vault.reserve(text)
    return _sanitize(text, vault)


def _sanitize(text: str, vault: PlaceholderVault) -> SanitizationResult:
    detections = detect_pii(text)

    if should_block(detections):
        return SanitizationResult(
            sanitized_text=text,
            detections=[d for d in detections if not should_sanitize(d)],
            blocked=True,
            blocked_types=blocked_types(detections),
        )

    placeholder_map: PlaceholderMap = {}
    applied: list[Detection] = []
    result = text
    offset = 0          # length drift between original and rewritten text

    for detection in _merge_overlaps(text, detections):
        placeholder = vault.allocate(detection.type, detection.original_value)
        placeholder_map[placeholder] = detection.original_value

        pos = detection.position
        start = pos.start + offset
        end = pos.end + offset
        result = result[:start] + placeholder + result[end:]
        offset += len(placeholder) - pos.length

        applied.append(dataclasses.replace(detection, sanitized_value=placeholder))

    return SanitizationResult(
        sanitized_text=result,
        placeholder_map=placeholder_map,
        detections=applied,
        blocked=False,
    )


def sanitize_messages(
    messages: Sequence[ChatMessage],
    *,
    content_key: str = "content",
) -> MessageSanitizationResult:
    """Sanitize the user turns of a chat batch.

    All-or-nothing: if any user turn is blocked, the whole batch is
    blocked and the original messages come back unchanged.  Counters run
    across the batch so placeholders never collide in the combined map.
    Does NOT mutate the input dicts.
    """
    vault = PlaceholderVault()
    combined: PlaceholderMap = {}
    detected: list[PIIType] = []
    blocked: list[PIIType] = []
    out: list[ChatMessage] = []

    # Any turn can be echoed back by the model, not just user turns
    for msg in messages:
        content = msg.get(content_key)
        if isinstance(content, str):
            vault.reserve(content)

    for msg in messages:
        content = msg.get(content_key)
        if msg.get("role") != "user" or not isinstance(content, str):
            out.append({"role": msg.get("role"), content_key: content})
            continue

        result = _sanitize(content, vault)
        if result.blocked:
            _extend_unique(blocked, result.blocked_types)
            continue

        combined.update(result.placeholder_map)
        _extend_unique(detected, (d.type for d in result.detections))
        out.append({"role": msg["role"], content_key: result.sanitized_text})

    if blocked:
        logger.info(
            "blocked batch of %d messages: %s",
            len(messages), ", ".join(t.value for t in blocked),
        )
        return MessageSanitizationResult(
            messages=list(messages),
            blocked=True,
            blocked_types=blocked,
        )

    if combined:
        logger.debug("sanitized %d placeholders across %d messages", len(combined), len(messages))
    return MessageSanitizationResult(
        messages=out,
        placeholder_map=combined,
        detected_types=detected,
        blocked=False,
    )


def restore_pii(text: str, placeholder_map: PlaceholderMap) -> str:
    """Put the original values back in a model reply."""
    return restore_placeholders(text, placeholder_map)


def merge_placeholder_maps(*maps: PlaceholderMap) -> PlaceholderMap:
    """Merge maps; later maps win on key collision."""
    merged: PlaceholderMap = {}
    for m in maps:
        merged.update(m)
    return merged


def _merge_overlaps(text: str, detections: list[Detection]) -> list[Detection]:
    """Collapse overlapping sanitize spans into one span each.

    A merged span covers the union of its members and takes the type of
    the longest one, so no fragment of either value is left in clear.
    Input is sorted by start; output is too.
    """
    merged: list[Detection] = []
    group: list[Detection] = []
    end = 0

    def flush() -> None:
        if not group:
            return
        if len(group) == 1:
            merged.append(group[0])
            return
        longest = max(group, key=lambda d: d.position.length)
        start = group[0].position.start
        logger.debug("merged %d overlapping spans at %d into %s", len(group), start, longest.type.value)
        merged.append(Detection(
            type=longest.type,
            original_value=text[start:end],
            position=Position(start, end),
        ))

    for d in detections:
        if not should_sanitize(d):
            continue
        if group and d.position.start < end:
            group.append(d)
            end = max(end, d.position.end)
            continue
        flush()
        group = [d]
        end = d.position.end
    flush()
    return merged


def _extend_unique(target: list[PIIType], items) -> None:
    for item in items:
        if item not in target:
            target.append(item)
