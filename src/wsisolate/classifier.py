"""Decide what to do with a newly mapped window."""

from __future__ import annotations

import enum

from attrs import define

from wsisolate.host import WindowInfo, WindowType
from wsisolate.matchers import MatcherEntry, MatcherRegistry


class Verdict(enum.Enum):
    IGNORE = "ignore"
    TRANSIENT = "transient"
    PENDING = "pending"
    NO_MATCH = "no-match"
    PLACE = "place"


@define(frozen=True)
class Classification:
    verdict: Verdict
    entry: MatcherEntry | None = None
    reason: str = ""


def classify(window: WindowInfo, registry: MatcherRegistry) -> Classification:
    """Classify a window against the registry.

    Rules, first hit wins:
        1. Pinned to all slots: ignore.
        2. Has a transient parent: follow the parent, whatever the matchers say.
        3. Not a normal window: ignore.
        4. Skipped in the task switcher: ignore.
        5. Outside the managed slot sequence: ignore.
        6. Owning application unknown: retry later.
        7. No matcher hits: no match.
        8. Otherwise: place.
    """
    if window.on_all_slots:
        return Classification(Verdict.IGNORE, reason="on all slots")
    if window.transient_for is not None:
        return Classification(Verdict.TRANSIENT)
    if window.window_type is not WindowType.NORMAL:
        return Classification(Verdict.IGNORE, reason=window.window_type.value)
    if window.skip_taskbar:
        return Classification(Verdict.IGNORE, reason="skip taskbar")
    if window.slot is None:
        return Classification(Verdict.IGNORE, reason="unmanaged slot")
    if window.app_id is None:
        return Classification(Verdict.PENDING)

    entry = registry.match(window)
    if entry is None:
        return Classification(Verdict.NO_MATCH)
    return Classification(Verdict.PLACE, entry=entry)
