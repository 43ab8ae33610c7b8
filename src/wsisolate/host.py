"""Host environment interface consumed by the placement engine."""

from __future__ import annotations

import enum
from collections.abc import Callable, Hashable
from typing import Protocol

from attrs import define

WINDOW_MAPPED = "window-mapped"
WINDOW_DESTROYED = "window-destroyed"
WINDOW_MINIMIZED = "window-minimized"

SIGNALS = (WINDOW_MAPPED, WINDOW_DESTROYED, WINDOW_MINIMIZED)


class HostError(Exception):
    """Unexpected failure reported by the host environment."""


class WindowType(enum.Enum):
    NORMAL = "normal"
    DIALOG = "dialog"
    UTILITY = "utility"
    OVERRIDE = "override"


@define(frozen=True)
class WindowInfo:
    """Snapshot of a window's attributes at query time.

    `app_id` is None while the owning application is not resolved yet.
    `slot` is None when the window is outside the managed slot sequence.
    """

    id: int
    window_type: WindowType = WindowType.NORMAL
    transient_for: int | None = None
    skip_taskbar: bool = False
    on_all_slots: bool = False
    app_id: str | None = None
    wm_class: str | None = None
    title: str = ""
    slot: int | None = None
    output: str | None = None

    def identity_fields(self) -> list[str]:
        """Return the non-empty identity strings usable for matching."""
        return [f for f in (self.app_id, self.wm_class, self.title) if f]


class Host(Protocol):
    """Window and slot primitives offered by a host environment.

    Windows are addressed by their stable id. Queries on a window that no
    longer exists return None instead of raising.
    """

    @property
    def dynamic_slots(self) -> bool:
        """True when the host reclaims empty slots on its own."""
        ...

    def connect(self, signal: str, callback: Callable[[int], None]) -> int: ...

    def disconnect(self, handler_id: int) -> None: ...

    def window_info(self, window_id: int) -> WindowInfo | None: ...

    def slot_count(self) -> int: ...

    def slot_key(self, index: int) -> Hashable:
        """Identity of the slot at `index` that survives reordering."""
        ...

    def slot_index(self, key: Hashable) -> int | None:
        """Current index of the slot with `key`, or None if it is gone."""
        ...

    def slot_windows(self, index: int) -> list[WindowInfo]: ...

    def active_slot(self) -> int: ...

    def primary_output(self) -> str | None: ...

    def append_slot(self) -> int: ...

    def reorder_slot(self, index: int, new_index: int) -> None: ...

    def remove_slot(self, index: int) -> None: ...

    def activate_slot(self, index: int) -> None: ...

    def move_window(self, window_id: int, index: int) -> None: ...

    def focus_window(self, window_id: int) -> None: ...
