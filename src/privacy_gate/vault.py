"""PlaceholderVault — per-pass mapping between placeholders and PII.

Lives for one provider round trip: the request is sanitized through it,
the reply is restored from it, then it is dropped.  Nothing here is
ever persisted.

Placeholders look like ``[EMAIL_1]``.  The closing bracket means no
placeholder is a substring of another (``[EMAIL_1]`` vs ``[EMAIL_10]``),
so restore order across keys doesn't matter.
"""

from __future__ import annotations
from collections import defaultdict

from .types import PIIType, PlaceholderMap


_PLACEHOLDER_FMT = "[{prefix}_{idx}]"


class PlaceholderVault:
    """Allocates ``[TYPE_N]`` placeholders with per-type 1-based counters."""

    __slots__ = ("_placeholder_to_pii", "_counters", "_reserved")

    def __init__(self) -> None:
        self._placeholder_to_pii: PlaceholderMap = {}   # "[EMAIL_1]" → "john@x.com"
        self._counters: dict[PIIType, int] = defaultdict(int)
        self._reserved: list[str] = []                  # texts whose literal tokens are off limits

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def reserve(self, text: str) -> None:
        """Never hand out a placeholder that already appears in ``text``.

        Otherwise a literal ``[EMAIL_1]`` typed by the user would be
        rewritten into a value on restore.
        """
        if "[" in text:
            self._reserved.append(text)

    def allocate(self, pii_type: PIIType, original: str) -> str:
        """Create a fresh placeholder for this occurrence.

        Every occurrence gets its own number, even when the value
        repeats: the second ``a@b.com`` becomes ``[EMAIL_2]``.  Numbers
        whose token is in a reserved text are skipped.
        """
        while True:
            self._counters[pii_type] += 1
            placeholder = _PLACEHOLDER_FMT.format(
                prefix=pii_type.placeholder_prefix, idx=self._counters[pii_type]
            )
            if not any(placeholder in t for t in self._reserved):
                break
        self._placeholder_to_pii[placeholder] = original
        return placeholder

    def rehydrate(self, text: str) -> str:
        """Replace every known placeholder in text with its original value."""
        return restore_placeholders(text, self._placeholder_to_pii)

    def lookup(self, placeholder: str) -> str | None:
        return self._placeholder_to_pii.get(placeholder)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._placeholder_to_pii)

    def dump(self) -> PlaceholderMap:
        """Return a copy of the placeholder→pii mapping."""
        return dict(self._placeholder_to_pii)

    def clear(self) -> None:
        self._placeholder_to_pii.clear()
        self._counters.clear()
        self._reserved.clear()


def restore_placeholders(text: str, placeholder_map: PlaceholderMap) -> str:
    """Replace all occurrences of each placeholder with its original.

    Placeholders missing from the map (hallucinated by the model, or
    malformed) are left as literal text.  Maps built through a vault
    never contain a token that was already literal in the input, see
    ``PlaceholderVault.reserve``.
    """
    if not placeholder_map:
        return text
    result = text
    for placeholder, original in placeholder_map.items():
        if placeholder in result:
            result = result.replace(placeholder, original)
    return result
