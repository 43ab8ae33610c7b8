"""Placement engine: wires host events to classification and placement."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Hashable
from typing import Any, TypeVar

from wsisolate.classifier import Verdict, classify
from wsisolate.config import ConfigError, ConfigSource, Settings
from wsisolate.host import (
    WINDOW_DESTROYED,
    WINDOW_MAPPED,
    WINDOW_MINIMIZED,
    Host,
    WindowInfo,
)
from wsisolate.matchers import MatcherEntry, MatcherRegistry
from wsisolate.placement import Placement, PlacementExecutor
from wsisolate.scheduler import Scheduler
from wsisolate.slots import SlotLocator
from wsisolate.tracker import LifecycleTracker, MovedRegistry

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])


def _guarded(func: _F) -> _F:
    """Log and swallow failures so one window cannot break event delivery."""

    @functools.wraps(func)
    def wrapper(self: Engine, *args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
        try:
            return func(self, *args, **kwargs)
        except Exception:
            logger.exception("%s%r failed", func.__name__, args)
            return None

    return wrapper  # type: ignore[return-value]


class Engine:
    """Owns all engine state between enable() and disable()."""

    def __init__(
        self,
        host: Host,
        config_source: ConfigSource,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.host = host
        self.config_source = config_source
        self.scheduler = scheduler if scheduler is not None else Scheduler()
        self.registry = MatcherRegistry()
        self.moved = MovedRegistry()
        self.locator = SlotLocator(host)
        self.executor = PlacementExecutor(host, self.locator, self.moved)
        self.tracker = LifecycleTracker(host, self.locator, self.moved)
        self.settings = Settings()
        self._enabled = False
        self._host_handlers: list[int] = []
        self._config_handler: int | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> bool:
        """Load configuration and subscribe to host events.

        Returns False, without subscribing to anything, when the
        configuration is unavailable.
        """
        if self._enabled:
            return True
        try:
            settings = self.config_source.load()
        except ConfigError as e:
            logger.warning("enable: configuration unavailable: %s", e)
            return False

        self._apply(settings)
        try:
            self._config_handler = self.config_source.connect(self._config_changed)
            for signal, callback in (
                (WINDOW_MAPPED, self.window_mapped),
                (WINDOW_DESTROYED, self.window_destroyed),
                (WINDOW_MINIMIZED, self.window_minimized),
            ):
                self._host_handlers.append(self.host.connect(signal, callback))
        except Exception:
            logger.warning("enable: subscription failed, rolling back")
            self.disable()
            raise
        self._enabled = True
        logger.info("enabled with %d matchers", len(self.registry))
        return True

    def disable(self) -> None:
        """Unsubscribe, cancel pending actions and forget all state.

        Safe to call repeatedly and after a failed enable().
        """
        for handler_id in self._host_handlers:
            try:
                self.host.disconnect(handler_id)
            except Exception:
                logger.exception("disable: failed to disconnect handler %d", handler_id)
        self._host_handlers = []
        if self._config_handler is not None:
            self.config_source.disconnect(self._config_handler)
            self._config_handler = None

        self.scheduler.cancel_all()
        self.registry.clear()
        self.moved.clear()
        if self._enabled:
            logger.info("disabled")
        self._enabled = False

    def _apply(self, settings: Settings) -> None:
        self.settings = settings
        self.registry.sync(settings.apps)

    def _config_changed(self) -> None:
        if not self._enabled:
            return
        try:
            settings = self.config_source.load()
        except ConfigError as e:
            logger.warning("configuration reload failed, keeping previous: %s", e)
            return
        self._apply(settings)
        logger.info("configuration reloaded, %d matchers", len(self.registry))

    @property
    def dynamic_slots(self) -> bool:
        return self.settings.dynamic_slots or self.host.dynamic_slots

    # =========================================================================
    # Host events
    # =========================================================================

    @_guarded
    def window_mapped(self, window_id: int) -> None:
        if not self._enabled:
            return
        if window_id in self.moved or self.scheduler.has_pending(window_id):
            return
        window = self.host.window_info(window_id)
        if window is None:
            return

        result = classify(window, self.registry)
        if result.verdict is Verdict.TRANSIENT:
            self.follow_parent(window)
            return
        if result.verdict is Verdict.IGNORE:
            logger.debug("window %d ignored: %s", window_id, result.reason)
            return

        self._defer(
            self.settings.settle_delay_ms,
            functools.partial(self._settled, window_id, 0),
            name="settle",
            window_id=window_id,
        )

    @_guarded
    def window_destroyed(self, window_id: int) -> None:
        self._window_removed(window_id)

    @_guarded
    def window_minimized(self, window_id: int) -> None:
        self._window_removed(window_id)

    def _window_removed(self, window_id: int) -> None:
        if not self._enabled:
            return
        self.scheduler.cancel_window(window_id)
        self.tracker.window_removed(
            window_id,
            dynamic=self.dynamic_slots,
            scope_to_output=self.settings.scope_to_output,
        )

    # =========================================================================
    # Deferred actions
    # =========================================================================

    def _defer(
        self,
        delay_ms: int,
        action: Callable[[], None],
        *,
        name: str,
        window_id: int | None = None,
    ) -> int:
        def run() -> None:
            if self._enabled:
                action()

        return self.scheduler.schedule(delay_ms, run, name=name, window_id=window_id)

    @_guarded
    def _settled(self, window_id: int, attempt: int) -> None:
        window = self.host.window_info(window_id)
        if window is None or window_id in self.moved:
            return

        result = classify(window, self.registry)
        if result.verdict is Verdict.TRANSIENT:
            self.follow_parent(window)
        elif result.verdict is Verdict.PENDING:
            if attempt >= self.settings.max_app_retries:
                logger.warning(
                    "window %d: application unresolved after %d retries",
                    window_id,
                    attempt,
                )
                return
            self._defer(
                self.settings.retry_delay_ms,
                functools.partial(self._settled, window_id, attempt + 1),
                name="retry",
                window_id=window_id,
            )
        elif result.verdict is Verdict.PLACE and result.entry is not None:
            self._place(window_id, result.entry)
        else:
            logger.debug("window %d not placed: %s", window_id, result.verdict.value)

    def _place(self, window_id: int, entry: MatcherEntry) -> Placement | None:
        placement = self.executor.place(window_id, entry, self.settings)
        if placement is not None and placement.restore_focus:
            self._defer(
                self.settings.focus_grace_ms,
                functools.partial(
                    self._restore_focus, self.host.slot_key(placement.origin)
                ),
                name="restore-focus",
            )
        return placement

    @_guarded
    def _restore_focus(self, key: Hashable) -> None:
        slot = self.host.slot_index(key)
        if slot is None:
            logger.debug("restore-focus: origin slot %r is gone", key)
            return
        logger.debug("restoring focus to slot %d", slot)
        self.host.activate_slot(slot)

    def follow_parent(self, window: WindowInfo) -> bool:
        """Move a transient window onto its parent's current slot.

        Returns True if the window was moved.
        """
        if window.transient_for is None:
            return False
        parent = self.host.window_info(window.transient_for)
        if parent is None or parent.slot is None:
            return False
        if window.slot == parent.slot:
            return False
        logger.info(
            "moving transient window %d to parent %d on slot %d",
            window.id,
            parent.id,
            parent.slot,
        )
        self.host.move_window(window.id, parent.slot)
        self.host.activate_slot(parent.slot)
        return True
