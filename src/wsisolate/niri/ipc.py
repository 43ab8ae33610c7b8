"""niri IPC wrapper for window management."""

from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Any

from wsisolate.host import HostError

logger = logging.getLogger(__name__)


class NiriError(HostError):
    """Error communicating with niri."""


@dataclass
class Window:
    """A niri window."""

    id: int
    title: str
    app_id: str | None
    pid: int | None
    workspace_id: int | None
    is_floating: bool = False


@dataclass
class Workspace:
    """A niri workspace."""

    id: int
    idx: int
    output: str | None
    name: str | None = None
    is_active: bool = False
    is_focused: bool = False

    @property
    def reference(self) -> str:
        """Argument identifying this workspace in niri actions."""
        return self.name or str(self.idx)


def _check_socket() -> None:
    if not os.environ.get("NIRI_SOCKET"):
        raise NiriError("NIRI_SOCKET not set")


def _run_niri_msg(args: list[str], *, json_output: bool = True) -> Any:  # noqa: ANN401
    """Run niri msg command and return parsed output."""
    _check_socket()

    cmd = ["niri", "msg"]
    if json_output:
        cmd.append("--json")
    cmd.extend(args)

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)  # noqa: S603
    except subprocess.CalledProcessError as e:
        raise NiriError(f"niri msg failed: {e.stderr}") from e
    except FileNotFoundError as e:
        raise NiriError("niri executable not found") from e

    if json_output and result.stdout.strip():
        return json.loads(result.stdout)
    return None


def parse_window(w: dict[str, Any]) -> Window:
    return Window(
        id=w["id"],
        title=w.get("title") or "",
        app_id=w.get("app_id") or None,
        pid=w.get("pid"),
        workspace_id=w.get("workspace_id"),
        is_floating=bool(w.get("is_floating", False)),
    )


def parse_workspace(w: dict[str, Any]) -> Workspace:
    return Workspace(
        id=w["id"],
        idx=w["idx"],
        output=w.get("output"),
        name=w.get("name"),
        is_active=bool(w.get("is_active", False)),
        is_focused=bool(w.get("is_focused", False)),
    )


def get_windows() -> list[Window]:
    """Get all windows."""
    data = _run_niri_msg(["windows"])
    return [parse_window(w) for w in data or []]


def get_workspaces() -> list[Workspace]:
    """Get all workspaces with output mapping."""
    data = _run_niri_msg(["workspaces"])
    return [parse_workspace(w) for w in data or []]


def get_focused_output() -> str | None:
    """Get the name of the focused output."""
    data = _run_niri_msg(["focused-output"])
    if not data:
        return None
    return data.get("name")  # type: ignore[no-any-return]


def move_window_to_workspace(window_id: int, reference: str, *, focus: bool = False) -> None:
    _run_niri_msg(
        [
            "action",
            "move-window-to-workspace",
            "--window-id",
            str(window_id),
            "--focus",
            "true" if focus else "false",
            reference,
        ],
        json_output=False,
    )


def focus_workspace(reference: str) -> None:
    _run_niri_msg(["action", "focus-workspace", reference], json_output=False)


def focus_window(window_id: int) -> None:
    _run_niri_msg(["action", "focus-window", "--id", str(window_id)], json_output=False)


def focus_monitor(output: str) -> None:
    _run_niri_msg(["action", "focus-monitor", output], json_output=False)


def move_workspace_to_index(idx: int, reference: str) -> None:
    """Move a workspace to the 1-based index `idx` on its output."""
    _run_niri_msg(
        ["action", "move-workspace-to-index", "--reference", reference, str(idx)],
        json_output=False,
    )


def open_event_stream() -> subprocess.Popen[bytes]:
    """Start `niri msg --json event-stream`, unbuffered."""
    _check_socket()
    try:
        return subprocess.Popen(  # noqa: S603
            ["niri", "msg", "--json", "event-stream"],  # noqa: S607
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            bufsize=0,
        )
    except FileNotFoundError as e:
        raise NiriError("niri executable not found") from e


def parse_event(line: str | bytes) -> tuple[str, dict[str, Any]] | None:
    """Parse one event-stream line into (event name, payload)."""
    try:
        event = json.loads(line)
    except ValueError:
        logger.warning("parse_event: malformed line %r", line)
        return None
    if not isinstance(event, dict) or len(event) != 1:
        logger.warning("parse_event: unexpected event %r", event)
        return None
    name, payload = next(iter(event.items()))
    if not isinstance(payload, dict):
        payload = {}
    return name, payload
