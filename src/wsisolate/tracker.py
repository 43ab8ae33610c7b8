"""Track moved windows and collect the slots they leave behind."""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterator

from attrs import define

from wsisolate.host import Host
from wsisolate.slots import SlotLocator

logger = logging.getLogger(__name__)


@define
class MovedEntry:
    """Where a moved window came from and where it was put."""

    origin_slot: int
    slot: int
    output: str | None = None
    moved: bool = True


class MovedRegistry:
    """Windows relocated by the engine, keyed by window id."""

    def __init__(self) -> None:
        self._entries: dict[int, MovedEntry] = {}

    def record(self, window_id: int, entry: MovedEntry) -> None:
        if window_id in self._entries:
            logger.warning("window %d is already registered as moved", window_id)
            return
        self._entries[window_id] = entry

    def get(self, window_id: int) -> MovedEntry | None:
        return self._entries.get(window_id)

    def pop(self, window_id: int) -> MovedEntry | None:
        return self._entries.pop(window_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, window_id: object) -> bool:
        return window_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)


class Collection(enum.Enum):
    """What happened to the slot a window left."""

    UNTRACKED = "untracked"
    OCCUPIED = "occupied"
    DYNAMIC = "dynamic"
    REORDERED = "reordered"
    REMOVED = "removed"
    KEPT = "kept"


class LifecycleTracker:
    def __init__(self, host: Host, locator: SlotLocator, moved: MovedRegistry) -> None:
        self.host = host
        self.locator = locator
        self.moved = moved

    def window_removed(
        self, window_id: int, *, dynamic: bool, scope_to_output: bool = True
    ) -> Collection:
        """Forget a destroyed or minimized window and tidy its slot.

        Only windows moved by the engine are considered. When the slot is
        left empty and the host does not reclaim slots itself, the slot is
        moved next to the nearest lower occupied slot, or removed when the
        nearest occupied slot lies above it or there is none. The last
        remaining slot is never removed.
        """
        entry = self.moved.pop(window_id)
        if entry is None:
            return Collection.UNTRACKED

        window = self.host.window_info(window_id)
        if window is not None and window.slot is not None:
            slot, output = window.slot, window.output
        else:
            slot, output = entry.slot, entry.output
        if not scope_to_output:
            output = None

        count = self.host.slot_count()
        if not 0 <= slot < count:
            logger.debug("window %d left slot %d which no longer exists", window_id, slot)
            return Collection.KEPT
        if not self.locator.is_empty(slot, output, exclude=window_id):
            return Collection.OCCUPIED
        if dynamic:
            logger.debug("slot %d is empty, leaving it to the host", slot)
            return Collection.DYNAMIC

        nearest = self.locator.find_nearest_occupied(slot, output, exclude=window_id)
        if nearest is not None and nearest < slot:
            new_index = nearest + 1
            if new_index == slot:
                return Collection.KEPT
            logger.info("moving empty slot %d after slot %d", slot, nearest)
            self.host.reorder_slot(slot, new_index)
            return Collection.REORDERED
        if count > 1:
            logger.info("removing empty slot %d", slot)
            self.host.remove_slot(slot)
            return Collection.REMOVED
        return Collection.KEPT
