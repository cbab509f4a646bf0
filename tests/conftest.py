import heapq
import itertools

import numpy as np
import pytest

from processing.overlay import DisplaySurface
from processing.playback import PlaybackLoop
from schemas.messages import DetectionResult
from state.machine import SessionStateMachine
from state.session import BoothPhase


# Float slack so accumulated advance() steps still reach n * interval deadlines
EPSILON = 1e-9


class FakeHandle:
    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def cancelled(self):
        return self._cancelled


class FakeScheduler:
    """Virtual-clock scheduler.

    advance() fires due timers in deadline order. call_soon callbacks run before
    the clock moves on, so one queued by the last timer of an advance() stays
    pending until the next advance().
    """

    def __init__(self):
        self.now = 0.0
        self._seq = itertools.count()
        self._timers = []
        self._ready = []

    def call_soon(self, callback):
        handle = FakeHandle()
        self._ready.append((handle, callback))
        return handle

    def call_later(self, delay, callback):
        handle = FakeHandle()
        self._push(self.now + delay, handle, callback, None, 0)
        return handle

    def call_every(self, interval, callback):
        handle = FakeHandle()
        self._push(self.now + interval, handle, callback, interval, 1)
        return handle

    def _push(self, deadline, handle, callback, interval, tick):
        start = deadline - (interval or 0) * tick
        heapq.heappush(self._timers, (deadline, next(self._seq), handle, callback, interval, start, tick))

    def _peek_due(self, target):
        while self._timers and self._timers[0][2].cancelled():
            heapq.heappop(self._timers)
        if self._timers and self._timers[0][0] <= target + EPSILON:
            return self._timers[0]
        return None

    def run_ready(self):
        ready, self._ready = self._ready, []
        for handle, callback in ready:
            if not handle.cancelled():
                callback()

    def pending(self):
        live_timers = [t for t in self._timers if not t[2].cancelled()]
        live_ready = [r for r in self._ready if not r[0].cancelled()]
        return len(live_timers) + len(live_ready)

    def advance(self, seconds=0.0):
        target = self.now + seconds
        while True:
            if self._ready and (self.now < target or self._peek_due(target) is not None):
                self.run_ready()
                continue
            entry = self._peek_due(target)
            if entry is None:
                break
            heapq.heappop(self._timers)
            deadline, _, handle, callback, interval, start, tick = entry
            self.now = deadline
            if interval is not None:
                self._push(start + (tick + 1) * interval, handle, callback, interval, tick + 1)
            callback()
        self.now = target


def make_frame(value=0, width=64, height=48):
    return np.full((height, width, 3), value, dtype=np.uint8)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def surface():
    s = DisplaySurface()
    s.paint(make_frame(10))
    return s


@pytest.fixture
def shown():
    return []


@pytest.fixture
def playback(scheduler, shown):
    return PlaybackLoop(scheduler, on_frame=lambda frame, position: shown.append((frame.index, position)))


@pytest.fixture
def machine(scheduler, surface, playback):
    m = SessionStateMachine(scheduler, surface, playback)
    m.start_session()
    return m


@pytest.fixture
def drive(machine, scheduler):
    """Walk a started machine from IDLE into the given phase."""
    offsets = {
        BoothPhase.COUNTING_DOWN: 0.0,
        BoothPhase.CAPTURING: 3.0,
        BoothPhase.REVIEWING: 4.5,
        BoothPhase.COOLING_DOWN: 4.5,
    }

    def _drive(phase):
        machine.on_detection(DetectionResult(face_count=1))
        scheduler.advance(offsets[phase])
        if phase == BoothPhase.COOLING_DOWN:
            scheduler.run_ready()

    return _drive
