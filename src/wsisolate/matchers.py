"""Registry of application matchers."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from attrs import define

from wsisolate.host import WindowInfo

logger = logging.getLogger(__name__)

BACKGROUND_FLAGS = frozenset({"background", "bg"})


@define(frozen=True)
class MatcherEntry:
    """A pattern plus per-app behaviour flags."""

    pattern: str
    background: bool = False

    def matches(self, window: WindowInfo) -> bool:
        """Case-insensitive substring match against any identity field."""
        return any(self.pattern in f.lower() for f in window.identity_fields())


def parse_matcher(text: str) -> MatcherEntry | None:
    """Parse an `appId[:flags]` string.

    Numeric flags are legacy workspace numbers and are ignored. Returns None
    for an empty pattern.
    """
    pattern, _, flag_text = text.partition(":")
    pattern = pattern.strip().lower()
    pattern = pattern.removesuffix(".desktop")
    if not pattern:
        logger.warning("parse_matcher: ignoring empty pattern in %r", text)
        return None

    background = False
    for flag in flag_text.split(","):
        flag = flag.strip().lower()
        if not flag or flag.isdigit():
            continue
        if flag in BACKGROUND_FLAGS:
            background = True
        else:
            logger.warning("parse_matcher: unknown flag %r for %s", flag, pattern)

    return MatcherEntry(pattern=pattern, background=background)


class MatcherRegistry:
    """Current set of matchers, keyed by normalised pattern."""

    def __init__(self) -> None:
        self._entries: dict[str, MatcherEntry] = {}

    def sync(self, strings: Iterable[str]) -> None:
        """Replace all entries with those parsed from `strings`."""
        self._entries.clear()
        for text in strings:
            entry = parse_matcher(text)
            if entry is not None:
                self._entries[entry.pattern] = entry
        logger.debug("matchers: %s", sorted(self._entries))

    def clear(self) -> None:
        self._entries.clear()

    def match(self, window: WindowInfo) -> MatcherEntry | None:
        """Return the first entry matching the window, or None."""
        for entry in self._entries.values():
            if entry.matches(window):
                return entry
        return None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[MatcherEntry]:
        return iter(self._entries.values())
