from __future__ import annotations

import itertools
from collections.abc import Callable, Hashable
from typing import Any

import pytest

from wsisolate.config import Settings, StaticConfigSource
from wsisolate.engine import Engine
from wsisolate.host import SIGNALS, HostError, WindowInfo, WindowType
from wsisolate.scheduler import Scheduler


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FakeHost:
    """In-memory slot sequence recording every mutating call."""

    def __init__(self, n_slots: int = 1, *, dynamic_slots: bool = False) -> None:
        self._names = itertools.count()
        self.slots: list[str] = [f"ws{next(self._names)}" for _ in range(n_slots)]
        self.windows: dict[int, dict[str, Any]] = {}
        self.active = self.slots[0]
        self.focused: int | None = None
        self.primary = "eDP-1"
        self.dynamic_slots = dynamic_slots
        self.calls: list[tuple[Any, ...]] = []
        self._handlers: dict[int, tuple[str, Callable[[int], None]]] = {}
        self._ids = itertools.count(1)

    # Test helpers

    def add_window(
        self,
        window_id: int,
        slot: int | None = 0,
        *,
        app_id: str | None = "app",
        output: str | None = "eDP-1",
        **attrs: Any,
    ) -> int:
        self.windows[window_id] = {
            "slot": self.slots[slot] if slot is not None else None,
            "app_id": app_id,
            "output": output,
            **attrs,
        }
        return window_id

    def emit(self, signal: str, window_id: int) -> None:
        for handler_signal, callback in list(self._handlers.values()):
            if handler_signal == signal:
                callback(window_id)

    def slot_of(self, window_id: int) -> int | None:
        info = self.window_info(window_id)
        return info.slot if info else None

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    # Host protocol

    def connect(self, signal: str, callback: Callable[[int], None]) -> int:
        assert signal in SIGNALS
        handler_id = next(self._ids)
        self._handlers[handler_id] = (signal, callback)
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._handlers.pop(handler_id, None)

    def window_info(self, window_id: int) -> WindowInfo | None:
        data = self.windows.get(window_id)
        if data is None:
            return None
        slot_name = data["slot"]
        return WindowInfo(
            id=window_id,
            window_type=data.get("window_type", WindowType.NORMAL),
            transient_for=data.get("transient_for"),
            skip_taskbar=data.get("skip_taskbar", False),
            on_all_slots=data.get("on_all_slots", False),
            app_id=data["app_id"],
            wm_class=data.get("wm_class"),
            title=data.get("title", ""),
            slot=self.slots.index(slot_name) if slot_name in self.slots else None,
            output=data["output"],
        )

    def slot_count(self) -> int:
        return len(self.slots)

    def slot_key(self, index: int) -> str:
        return self.slots[index]

    def slot_index(self, key: Hashable) -> int | None:
        return self.slots.index(key) if key in self.slots else None

    def slot_windows(self, index: int) -> list[WindowInfo]:
        name = self.slots[index]
        infos = []
        for window_id, data in self.windows.items():
            if data["slot"] == name or data.get("on_all_slots"):
                info = self.window_info(window_id)
                assert info is not None
                infos.append(info)
        return infos

    def active_slot(self) -> int:
        return self.slots.index(self.active)

    def primary_output(self) -> str | None:
        return self.primary

    def append_slot(self) -> int:
        self.calls.append(("append_slot",))
        self.slots.append(f"ws{next(self._names)}")
        return len(self.slots) - 1

    def reorder_slot(self, index: int, new_index: int) -> None:
        self.calls.append(("reorder_slot", index, new_index))
        name = self.slots.pop(index)
        self.slots.insert(new_index, name)

    def remove_slot(self, index: int) -> None:
        self.calls.append(("remove_slot", index))
        if len(self.slots) == 1:
            raise HostError("cannot remove the last slot")
        name = self.slots.pop(index)
        if self.active == name:
            self.active = self.slots[max(index - 1, 0)]

    def activate_slot(self, index: int) -> None:
        self.calls.append(("activate_slot", index))
        self.active = self.slots[index]

    def move_window(self, window_id: int, index: int) -> None:
        self.calls.append(("move_window", window_id, index))
        self.windows[window_id]["slot"] = self.slots[index]

    def focus_window(self, window_id: int) -> None:
        self.calls.append(("focus_window", window_id))
        self.focused = window_id


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> Scheduler:
    return Scheduler(clock=clock)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def make_host() -> Callable[..., FakeHost]:
    return FakeHost


@pytest.fixture
def advance(clock: FakeClock, scheduler: Scheduler) -> Callable[[int], None]:
    """Move the clock forward and fire everything that became due."""

    def _advance(ms: int) -> None:
        clock.now += ms / 1000
        while scheduler.run_due():
            pass

    return _advance


@pytest.fixture
def make_engine(
    scheduler: Scheduler,
) -> Callable[..., tuple[Engine, StaticConfigSource]]:
    def _make(host: FakeHost, **settings: Any) -> tuple[Engine, StaticConfigSource]:
        source = StaticConfigSource(Settings(**settings))
        engine = Engine(host, source, scheduler=scheduler)
        return engine, source

    return _make
