"""Streaming restorer — buffers chunks and restores placeholders as they complete.

For SSE/streaming replies where placeholders arrive as fragments:
    [EM  →  [EMAIL  →  [EMAIL_  →  [EMAIL_1]

A ``[`` is held back while what follows could still become a
placeholder, and released as soon as it is complete or clearly not one.
Ordinary brackets (markdown links, lists) pass through with at most a
one-chunk delay.

Usage:
    restorer = StreamingRestorer(result.placeholder_map)
    for chunk in provider_stream:
        ready = restorer.feed(chunk)
        if ready:
            yield ready
    yield restorer.flush()
"""

from __future__ import annotations
import re

from .types import PlaceholderMap
from .vault import restore_placeholders


_PLACEHOLDER_COMPLETE = re.compile(r"\[[A-Z]+_\d+\]")
# A buffer that may still grow into a placeholder: "[", "[EMA", "[EMAIL_", "[EMAIL_12"
_PLACEHOLDER_PREFIX = re.compile(r"\[(?:[A-Z]+(?:_\d*)?)?\Z")


class StreamingRestorer:
    """Feeds streaming chunks through placeholder restoration."""

    __slots__ = ("_map", "_buffer", "_max_token_len")

    def __init__(self, placeholder_map: PlaceholderMap, *, max_token_len: int = 40) -> None:
        self._map = placeholder_map
        self._buffer = ""
        self._max_token_len = max_token_len  # safety limit

    def feed(self, chunk: str) -> str:
        """Feed a chunk, return any text ready to emit."""
        if not self._map:
            return chunk
        self._buffer += chunk
        return self._drain()

    def flush(self) -> str:
        """Flush remaining buffer (call at end of stream)."""
        out = self._buffer
        self._buffer = ""
        return restore_placeholders(out, self._map)

    def _drain(self) -> str:
        out_parts: list[str] = []

        while self._buffer:
            idx = self._buffer.find("[")

            if idx == -1:
                out_parts.append(self._buffer)
                self._buffer = ""
                break

            if idx > 0:
                out_parts.append(self._buffer[:idx])
                self._buffer = self._buffer[idx:]

            # Buffer starts with "["
            m = _PLACEHOLDER_COMPLETE.match(self._buffer)
            if m:
                token = m.group()
                out_parts.append(self._map.get(token, token))
                self._buffer = self._buffer[m.end():]
                continue

            if (
                _PLACEHOLDER_PREFIX.match(self._buffer)
                and len(self._buffer) <= self._max_token_len
            ):
                # Still accumulating a potential placeholder
                break

            # Not a placeholder: release the bracket, rescan the rest
            out_parts.append("[")
            self._buffer = self._buffer[1:]

        return "".join(out_parts)
