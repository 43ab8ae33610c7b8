from __future__ import annotations

from collections.abc import Callable

from wsisolate.slots import SlotLocator


def test_find_empty_returns_first_empty_slot(make_host: Callable) -> None:
    host = make_host(4)
    host.add_window(1, 0)
    host.add_window(2, 2)
    locator = SlotLocator(host)

    assert locator.find_empty() == 1
    assert locator.find_empty(last=True) == 3


def test_pinned_windows_do_not_occupy(make_host: Callable) -> None:
    host = make_host(2)
    host.add_window(1, 0, on_all_slots=True)
    host.add_window(2, 1)

    assert SlotLocator(host).find_empty() == 0


def test_excluded_window_does_not_occupy(make_host: Callable) -> None:
    host = make_host(2)
    host.add_window(1, 0)
    host.add_window(2, 1)

    assert SlotLocator(host).find_empty(exclude=2) == 1


def test_emptiness_is_scoped_to_output(make_host: Callable) -> None:
    host = make_host(2)
    host.add_window(1, 0, output="HDMI-1")
    host.add_window(2, 1)
    locator = SlotLocator(host)

    assert locator.is_empty(0, output="eDP-1")
    assert not locator.is_empty(0)
    assert locator.find_empty(output="eDP-1") == 0
    assert locator.find_empty() is None


def test_find_nearest_occupied_looks_backward_first(make_host: Callable) -> None:
    host = make_host(5)
    host.add_window(1, 0)
    host.add_window(2, 4)
    locator = SlotLocator(host)

    assert locator.find_nearest_occupied(2) == 0


def test_find_nearest_occupied_falls_back_to_forward(make_host: Callable) -> None:
    host = make_host(4)
    host.add_window(2, 3)
    locator = SlotLocator(host)

    assert locator.find_nearest_occupied(1) == 3
    assert locator.find_nearest_occupied(3) is None


def test_find_or_create_appends_at_end(make_host: Callable) -> None:
    host = make_host(2)
    host.add_window(1, 0)
    host.add_window(2, 1)
    locator = SlotLocator(host)

    assert locator.find_or_create_empty() == 2
    assert host.slot_count() == 3
    assert host.calls == [("append_slot",)]
