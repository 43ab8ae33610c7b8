"""Locate empty and occupied slots in the host's slot sequence."""

from __future__ import annotations

import logging

from wsisolate.host import Host, WindowInfo

logger = logging.getLogger(__name__)


def _counts(window: WindowInfo, output: str | None, exclude: int | None) -> bool:
    if window.on_all_slots or window.id == exclude:
        return False
    return output is None or window.output == output


class SlotLocator:
    """Emptiness queries over the slot sequence.

    A slot is empty for a given `output` scope when it holds no window that
    is not pinned to all slots, lies on that output (any output when the
    scope is None) and is not the `exclude` window.
    """

    def __init__(self, host: Host) -> None:
        self.host = host

    def occupants(
        self, index: int, output: str | None = None, exclude: int | None = None
    ) -> list[WindowInfo]:
        return [
            w for w in self.host.slot_windows(index) if _counts(w, output, exclude)
        ]

    def is_empty(
        self, index: int, output: str | None = None, exclude: int | None = None
    ) -> bool:
        return not self.occupants(index, output, exclude)

    def find_empty(
        self,
        output: str | None = None,
        exclude: int | None = None,
        *,
        last: bool = False,
    ) -> int | None:
        """Return the first (or last) empty slot index, or None."""
        indices = range(self.host.slot_count())
        if last:
            indices = indices[::-1]
        for i in indices:
            if self.is_empty(i, output, exclude):
                return i
        return None

    def find_nearest_occupied(
        self, origin: int, output: str | None = None, exclude: int | None = None
    ) -> int | None:
        """Find an occupied slot, looking backward from `origin` then forward."""
        for i in range(origin - 1, -1, -1):
            if not self.is_empty(i, output, exclude):
                return i
        for i in range(origin + 1, self.host.slot_count()):
            if not self.is_empty(i, output, exclude):
                return i
        return None

    def create_slot(self) -> int:
        """Append a slot at the end of the sequence and return its index."""
        index = self.host.append_slot()
        logger.info("created slot %d", index)
        return index

    def find_or_create_empty(
        self, output: str | None = None, exclude: int | None = None
    ) -> int:
        index = self.find_empty(output, exclude)
        if index is None:
            index = self.create_slot()
        return index
