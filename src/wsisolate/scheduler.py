"""Cooperative deferred-action queue."""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from collections.abc import Callable

from attrs import define

logger = logging.getLogger(__name__)


@define
class ScheduledAction:
    token: int
    deadline: float
    callback: Callable[[], None]
    name: str
    window_id: int | None = None


class Scheduler:
    """Timer queue run from the same loop that delivers host events.

    Nothing here runs on its own: the owning loop calls `run_due()` whenever
    `timeout()` elapses. Every pending action is indexed by token so that
    cancellation is immediate.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._tokens = itertools.count(1)
        self._heap: list[tuple[float, int]] = []
        self._pending: dict[int, ScheduledAction] = {}

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule(
        self,
        delay_ms: int,
        callback: Callable[[], None],
        *,
        name: str = "",
        window_id: int | None = None,
    ) -> int:
        """Run `callback` once, `delay_ms` after now. Returns a cancel token."""
        token = next(self._tokens)
        deadline = self._clock() + max(delay_ms, 0) / 1000
        self._pending[token] = ScheduledAction(
            token=token,
            deadline=deadline,
            callback=callback,
            name=name,
            window_id=window_id,
        )
        heapq.heappush(self._heap, (deadline, token))
        logger.debug("scheduled %s #%d in %dms", name or "action", token, delay_ms)
        return token

    def cancel(self, token: int) -> bool:
        """Cancel one action. Returns False if it already fired or was cancelled."""
        return self._pending.pop(token, None) is not None

    def cancel_window(self, window_id: int) -> int:
        """Cancel every action tagged with `window_id`."""
        tokens = [t for t, a in self._pending.items() if a.window_id == window_id]
        for token in tokens:
            del self._pending[token]
        return len(tokens)

    def cancel_all(self) -> int:
        """Cancel everything. Safe to call repeatedly."""
        count = len(self._pending)
        self._pending.clear()
        self._heap.clear()
        if count:
            logger.debug("cancelled %d pending actions", count)
        return count

    def has_pending(self, window_id: int) -> bool:
        return any(a.window_id == window_id for a in self._pending.values())

    def _discard_stale(self) -> None:
        while self._heap and self._heap[0][1] not in self._pending:
            heapq.heappop(self._heap)

    def next_deadline(self) -> float | None:
        self._discard_stale()
        if not self._heap:
            return None
        return self._heap[0][0]

    def timeout(self) -> float | None:
        """Seconds until the next action is due, or None if idle."""
        deadline = self.next_deadline()
        if deadline is None:
            return None
        return max(deadline - self._clock(), 0.0)

    def run_due(self) -> int:
        """Fire every action whose deadline has passed.

        Actions scheduled by a firing action wait for the next call. A failing
        action is logged and does not stop the others.
        """
        now = self._clock()
        due: list[int] = []
        while self._heap and self._heap[0][0] <= now:
            _, token = heapq.heappop(self._heap)
            if token in self._pending:
                due.append(token)

        fired = 0
        for token in due:
            action = self._pending.pop(token, None)
            if action is None:
                continue
            fired += 1
            try:
                action.callback()
            except Exception:
                logger.exception("scheduled action %s #%d failed", action.name, token)
        return fired
