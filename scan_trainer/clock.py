from __future__ import annotations

import heapq
import time
from collections.abc import Callable
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class TimerHandle:
    """Cancellable handle for a one-shot or repeating timer."""

    __slots__ = ("_callback", "_interval_s", "_cancelled", "_fired")

    def __init__(self, callback: Callable[[], None], *, interval_s: float | None) -> None:
        self._callback = callback
        self._interval_s = interval_s
        self._cancelled = False
        self._fired = False

    @property
    def repeating(self) -> bool:
        return self._interval_s is not None

    @property
    def interval_s(self) -> float | None:
        return self._interval_s

    @property
    def active(self) -> bool:
        if self._cancelled:
            return False
        return self.repeating or not self._fired

    def cancel(self) -> None:
        self._cancelled = True


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...
    def call_repeating(self, interval_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class TimerQueue:
    """Cooperative timer queue driven by an injected Clock.

    Nothing fires on its own: the owner calls ``run_due()`` (once per frame in
    the UI, explicitly in tests) and every timer whose deadline has passed runs
    on the caller's thread.

    Repeating timers are fixed-rate. The n-th firing is due at
    ``start + n * interval`` no matter how late the pump runs.

    Callbacks must not raise. An exception propagates out of ``run_due()``
    and ends that pump; timers still due stay queued for the next call.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._heap: list[tuple[float, int, TimerHandle, float, int]] = []
        self._seq = 0

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        handle = TimerHandle(callback, interval_s=None)
        now = self._clock.now()
        self._push(now + float(delay_s), handle, origin_s=now, count=1)
        return handle

    def call_repeating(self, interval_s: float, callback: Callable[[], None]) -> TimerHandle:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        interval_s = float(interval_s)
        handle = TimerHandle(callback, interval_s=interval_s)
        now = self._clock.now()
        self._push(now + interval_s, handle, origin_s=now, count=1)
        return handle

    def pending(self) -> int:
        return sum(1 for _, _, handle, _, _ in self._heap if handle.active)

    def next_deadline_s(self) -> float | None:
        for due_s, _, handle, _, _ in sorted(self._heap):
            if handle.active:
                return due_s
        return None

    def cancel_all(self) -> None:
        for _, _, handle, _, _ in self._heap:
            handle.cancel()
        self._heap.clear()

    def run_due(self) -> int:
        """Fire every timer that is due. Returns the number of callbacks run."""

        now = self._clock.now()
        fired = 0
        while self._heap and self._heap[0][0] <= now:
            due_s, _, handle, origin_s, count = heapq.heappop(self._heap)
            if not handle.active:
                continue

            interval_s = handle.interval_s
            if interval_s is not None:
                # Re-arm first so a failing callback does not end the schedule.
                next_count = count + 1
                self._push(origin_s + interval_s * next_count, handle, origin_s=origin_s, count=next_count)
            else:
                handle._fired = True

            fired += 1
            handle._callback()
        return fired

    def _push(self, due_s: float, handle: TimerHandle, *, origin_s: float, count: int) -> None:
        heapq.heappush(self._heap, (due_s, self._seq, handle, origin_s, count))
        self._seq += 1
