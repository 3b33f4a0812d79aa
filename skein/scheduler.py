"""Repeating timers for playback and live tail."""
from __future__ import annotations

import time
from collections.abc import Callable
from heapq import heappop, heappush

TaskCallback = Callable[[], None]


class Handle:
    """A scheduled repeating callback. Cancelled handles never fire again."""

    __slots__ = ("task_id", "interval", "callback", "due", "cancelled")

    def __init__(self, task_id: int, interval: float, callback: TaskCallback, due: float):
        self.task_id = task_id
        self.interval = interval
        self.callback = callback
        self.due = due
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """Time-based scheduler polled by the event loop."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._next_task_id = 1
        self._queue: list[tuple[float, int, Handle]] = []

    @property
    def active_count(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def call_every(self, interval: float, callback: TaskCallback) -> Handle:
        """Schedule a recurring callback at a fixed interval."""
        if interval <= 0.0:
            raise ValueError("interval must be > 0")
        handle = Handle(self._next_task_id, interval, callback, self._clock() + interval)
        self._next_task_id += 1
        heappush(self._queue, (handle.due, handle.task_id, handle))
        return handle

    def cancel_all(self) -> None:
        for _, _, handle in self._queue:
            handle.cancel()
        self._queue.clear()

    def timeout(self) -> float | None:
        """Seconds until the next live deadline, or None when idle."""
        while self._queue and self._queue[0][2].cancelled:
            heappop(self._queue)
        if not self._queue:
            return None
        return max(0.0, self._queue[0][0] - self._clock())

    def due(self) -> list[Handle]:
        """Pop every handle whose deadline has passed and re-arm it."""
        now = self._clock()
        ready: list[Handle] = []
        while self._queue and self._queue[0][0] <= now:
            _, _, handle = heappop(self._queue)
            if handle.cancelled:
                continue
            ready.append(handle)
            handle.due += handle.interval
            if handle.due <= now:
                handle.due = now + handle.interval
            heappush(self._queue, (handle.due, handle.task_id, handle))
        return ready

    @staticmethod
    def fire(handle: Handle) -> bool:
        if handle.cancelled:
            return False
        handle.callback()
        return True

    def run_due(self) -> int:
        """Fire everything that is due right now; returns the count fired."""
        return sum(1 for handle in self.due() if self.fire(handle))
