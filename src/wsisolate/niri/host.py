"""Host implementation backed by the niri event stream."""

from __future__ import annotations

import dataclasses
import itertools
import logging
import os
import selectors
import subprocess
from collections.abc import Callable, Hashable
from typing import Any

from wsisolate.host import (
    SIGNALS,
    WINDOW_DESTROYED,
    WINDOW_MAPPED,
    HostError,
    WindowInfo,
    WindowType,
)
from wsisolate.niri import ipc
from wsisolate.niri.ipc import NiriError

logger = logging.getLogger(__name__)


class NiriHost:
    """Expose the workspaces of one niri output as the slot sequence.

    niri keeps an empty workspace at the end of every output and drops empty
    workspaces on its own, so slots are always managed dynamically. niri
    reports neither transient parents nor window types; floating windows are
    treated as utility windows.
    """

    dynamic_slots = True

    def __init__(self, output: str | None = None) -> None:
        self.output = output
        self._windows: dict[int, ipc.Window] = {}
        self._workspaces: dict[int, ipc.Workspace] = {}
        self._handlers: dict[int, tuple[str, Callable[[int], None]]] = {}
        self._ids = itertools.count(1)
        self._process: subprocess.Popen[bytes] | None = None
        self._selector: selectors.BaseSelector | None = None
        self._buffer = b""

    # =========================================================================
    # Event stream
    # =========================================================================

    def sync(self) -> None:
        """Load the current windows and workspaces."""
        if self.output is None:
            self.output = ipc.get_focused_output()
        self._workspaces = {w.id: w for w in ipc.get_workspaces()}
        self._windows = {w.id: w for w in ipc.get_windows()}
        logger.info(
            "niri: managing output %s (%d workspaces, %d windows)",
            self.output,
            len(self._slots()),
            len(self._windows),
        )

    def start(self) -> None:
        self.sync()
        self._process = ipc.open_event_stream()
        if self._process.stdout is None:
            raise NiriError("event stream has no output pipe")
        self._selector = selectors.DefaultSelector()
        self._selector.register(self._process.stdout, selectors.EVENT_READ)

    def close(self) -> None:
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        if self._process is not None:
            self._process.terminate()
            self._process.wait()
            self._process = None
        self._buffer = b""

    def dispatch(self, timeout: float | None) -> int:
        """Wait up to `timeout` seconds for events and handle them.

        Returns the number of lines processed.
        """
        if (
            self._process is None
            or self._process.stdout is None
            or self._selector is None
        ):
            raise NiriError("event stream not started")
        if not self._selector.select(timeout):
            return 0
        chunk = os.read(self._process.stdout.fileno(), 65536)
        if not chunk:
            raise NiriError("niri event stream closed")
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b"\n")
        count = 0
        for line in lines:
            if line.strip():
                self.handle_line(line)
                count += 1
        return count

    def handle_line(self, line: str | bytes) -> None:
        event = ipc.parse_event(line)
        if event is not None:
            self.handle_event(*event)

    def handle_event(self, name: str, payload: dict[str, Any]) -> None:
        if name == "WorkspacesChanged":
            workspaces = [ipc.parse_workspace(w) for w in payload.get("workspaces", [])]
            self._workspaces = {w.id: w for w in workspaces}
        elif name == "WorkspaceActivated":
            self._activate(payload["id"], focused=bool(payload.get("focused")))
        elif name == "WindowsChanged":
            windows = [ipc.parse_window(w) for w in payload.get("windows", [])]
            self._windows = {w.id: w for w in windows}
        elif name == "WindowOpenedOrChanged":
            window = ipc.parse_window(payload["window"])
            is_new = window.id not in self._windows
            self._windows[window.id] = window
            if is_new:
                self._emit(WINDOW_MAPPED, window.id)
        elif name == "WindowClosed":
            window_id = payload["id"]
            if window_id in self._windows:
                self._emit(WINDOW_DESTROYED, window_id)
                del self._windows[window_id]

    def _activate(self, workspace_id: int, *, focused: bool) -> None:
        target = self._workspaces.get(workspace_id)
        if target is None:
            return
        for ws in self._workspaces.values():
            if ws.output == target.output:
                ws.is_active = ws.id == workspace_id
            if focused:
                ws.is_focused = ws.id == workspace_id

    def _emit(self, signal: str, window_id: int) -> None:
        for handler_signal, callback in list(self._handlers.values()):
            if handler_signal == signal:
                callback(window_id)

    # =========================================================================
    # Host protocol
    # =========================================================================

    def connect(self, signal: str, callback: Callable[[int], None]) -> int:
        if signal not in SIGNALS:
            raise ValueError(f"Unknown signal: {signal}")
        handler_id = next(self._ids)
        self._handlers[handler_id] = (signal, callback)
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._handlers.pop(handler_id, None)

    def _slots(self) -> list[ipc.Workspace]:
        return sorted(
            (
                ws
                for ws in self._workspaces.values()
                if self.output is None or ws.output == self.output
            ),
            key=lambda ws: (ws.output or "", ws.idx),
        )

    def _slot(self, index: int) -> ipc.Workspace:
        slots = self._slots()
        if not 0 <= index < len(slots):
            raise HostError(f"no slot {index}")
        return slots[index]

    def _info(self, window: ipc.Window, slots: list[ipc.Workspace]) -> WindowInfo:
        slot = None
        output = None
        ws = (
            self._workspaces.get(window.workspace_id)
            if window.workspace_id is not None
            else None
        )
        if ws is not None:
            output = ws.output
            if ws in slots:
                slot = slots.index(ws)
        return WindowInfo(
            id=window.id,
            window_type=WindowType.UTILITY if window.is_floating else WindowType.NORMAL,
            app_id=window.app_id,
            title=window.title,
            slot=slot,
            output=output,
        )

    def window_info(self, window_id: int) -> WindowInfo | None:
        window = self._windows.get(window_id)
        if window is None:
            return None
        return self._info(window, self._slots())

    def slot_count(self) -> int:
        return len(self._slots())

    def slot_windows(self, index: int) -> list[WindowInfo]:
        slots = self._slots()
        ws = self._slot(index)
        return [
            self._info(w, slots) for w in self._windows.values() if w.workspace_id == ws.id
        ]

    def active_slot(self) -> int:
        for i, ws in enumerate(self._slots()):
            if ws.is_active:
                return i
        return 0

    def primary_output(self) -> str | None:
        return self.output

    def append_slot(self) -> int:
        """Return niri's trailing empty workspace."""
        slots = self._slots()
        if slots:
            last = slots[-1]
            if not any(w.workspace_id == last.id for w in self._windows.values()):
                return len(slots) - 1
        raise HostError("niri has no trailing empty workspace")

    def _reference(self, ws: ipc.Workspace) -> str:
        """Return the action argument for `ws`.

        niri resolves workspace indices on the focused monitor, so the
        workspace's monitor is focused first when it is addressed by index.
        """
        if ws.name is None and ws.output is not None:
            focused = next((w for w in self._workspaces.values() if w.is_focused), None)
            if focused is None or focused.output != ws.output:
                logger.debug("niri: focusing monitor %s", ws.output)
                ipc.focus_monitor(ws.output)
        return ws.reference

    def slot_key(self, index: int) -> int:
        return self._slot(index).id

    def slot_index(self, key: Hashable) -> int | None:
        for i, ws in enumerate(self._slots()):
            if ws.id == key:
                return i
        return None

    def reorder_slot(self, index: int, new_index: int) -> None:
        ipc.move_workspace_to_index(new_index + 1, self._reference(self._slot(index)))

    def remove_slot(self, index: int) -> None:
        raise HostError("niri removes empty workspaces itself")

    def activate_slot(self, index: int) -> None:
        ipc.focus_workspace(self._reference(self._slot(index)))

    def move_window(self, window_id: int, index: int) -> None:
        ws = self._slot(index)
        ipc.move_window_to_workspace(window_id, self._reference(ws))
        window = self._windows.get(window_id)
        if window is not None:
            self._windows[window_id] = dataclasses.replace(window, workspace_id=ws.id)

    def focus_window(self, window_id: int) -> None:
        ipc.focus_window(window_id)
