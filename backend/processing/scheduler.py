import asyncio
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def call_soon(self, callback: Callable[[], None]) -> TimerHandle: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle: ...


class RepeatingTimer:
    """Fires `callback` every `interval` seconds until cancelled.

    Deadlines are computed from an anchor time (anchor + n * interval), so ticks
    never drift and always fire in order. If the loop stalls past the next
    deadline, the missed ticks are dropped and the grid restarts one interval
    after the late tick. The callback may cancel its own timer.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, interval: float, callback: Callable[[], None]):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._anchor = loop.time()
        self._since_anchor = 0
        self._ticks = 0
        self._cancelled = False
        self._handle: asyncio.TimerHandle | None = None
        self._schedule_next()

    def _schedule_next(self):
        deadline = self._anchor + (self._since_anchor + 1) * self._interval
        now = self._loop.time()
        if deadline - now < self._interval / 2:
            self._anchor = now
            self._since_anchor = 0
            deadline = now + self._interval
        self._handle = self._loop.call_at(deadline, self._fire)

    def _fire(self):
        self._ticks += 1
        self._since_anchor += 1
        self._callback()
        if not self._cancelled:
            self._schedule_next()

    @property
    def ticks(self) -> int:
        return self._ticks

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler:
    """Schedules session timers on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop or asyncio.get_running_loop()

    def time(self) -> float:
        return self._loop.time()

    def call_soon(self, callback: Callable[[], None]) -> asyncio.Handle:
        return self._loop.call_soon(callback)

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback)

    def call_every(self, interval: float, callback: Callable[[], None]) -> RepeatingTimer:
        return RepeatingTimer(self._loop, interval, callback)


def cancel_handle(handle: TimerHandle | None) -> None:
    """Cancel a timer handle if one is set."""
    if handle is not None and not handle.cancelled():
        handle.cancel()
