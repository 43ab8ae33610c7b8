"""Move matched windows onto an empty slot."""

from __future__ import annotations

import logging

from attrs import define

from wsisolate.config import Settings
from wsisolate.host import Host, WindowInfo, WindowType
from wsisolate.matchers import MatcherEntry
from wsisolate.slots import SlotLocator
from wsisolate.tracker import MovedEntry, MovedRegistry

logger = logging.getLogger(__name__)


@define(frozen=True)
class Placement:
    """Outcome of a placement attempt."""

    window_id: int
    origin: int
    target: int
    moved: bool = False
    restore_focus: bool = False


def _same_app(a: WindowInfo, b: WindowInfo) -> bool:
    if a.app_id and b.app_id:
        return a.app_id.lower() == b.app_id.lower()
    if a.wm_class and b.wm_class:
        return a.wm_class.lower() == b.wm_class.lower()
    return False


def _excluded(window: WindowInfo) -> bool:
    return (
        window.on_all_slots
        or window.skip_taskbar
        or window.transient_for is not None
        or window.window_type is not WindowType.NORMAL
    )


class PlacementExecutor:
    """Performs the move for a window that the classifier accepted."""

    def __init__(self, host: Host, locator: SlotLocator, moved: MovedRegistry) -> None:
        self.host = host
        self.locator = locator
        self.moved = moved

    def find_sibling(self, window: WindowInfo) -> WindowInfo | None:
        """Return another window of the same application in the window's slot."""
        if window.slot is None:
            return None
        for other in self.host.slot_windows(window.slot):
            if other.id == window.id or _excluded(other):
                continue
            if _same_app(window, other):
                return other
        return None

    def place(
        self, window_id: int, entry: MatcherEntry, settings: Settings
    ) -> Placement | None:
        """Move the window to the first empty slot, appending one if needed.

        Returns None when the window is gone or no longer eligible.
        """
        window = self.host.window_info(window_id)
        if window is None or window.slot is None:
            logger.debug("place: window %d is gone", window_id)
            return None
        if window.transient_for is not None:
            logger.debug("place: window %d became transient", window_id)
            return None
        if window_id in self.moved:
            return None
        if settings.slots_only_on_primary and window.output != self.host.primary_output():
            logger.debug("place: window %d is not on the primary output", window_id)
            return None

        origin = window.slot
        sibling = self.find_sibling(window)
        if sibling is not None:
            logger.info(
                "place: window %d stays in slot %d with sibling %d",
                window_id,
                origin,
                sibling.id,
            )
            return Placement(window_id=window_id, origin=origin, target=origin)

        output = window.output if settings.scope_to_output else None
        target = self.locator.find_or_create_empty(output, exclude=window_id)
        if target == origin:
            return Placement(window_id=window_id, origin=origin, target=target)

        logger.info(
            "place: moving window %d (%s) from slot %d to slot %d",
            window_id,
            entry.pattern,
            origin,
            target,
        )
        self.host.move_window(window_id, target)
        self.moved.record(
            window_id, MovedEntry(origin_slot=origin, slot=target, output=window.output)
        )

        if entry.background:
            return Placement(
                window_id=window_id,
                origin=origin,
                target=target,
                moved=True,
                restore_focus=True,
            )
        if settings.focus_new_slot:
            self.host.activate_slot(target)
            self.host.focus_window(window_id)
        return Placement(window_id=window_id, origin=origin, target=target, moved=True)
