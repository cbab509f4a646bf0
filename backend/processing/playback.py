"""
Looping preview of a captured burst.

A PlaybackLoop cycles a fixed sequence of frames at PLAYBACK_INTERVAL and hands
each one to a display sink. Every loop is owned through its PlaybackHandle and
keeps running until stopped explicitly.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from config import PLAYBACK_INTERVAL
from processing.scheduler import Scheduler, cancel_handle
from state.frame_buffer import CapturedFrame

logger = logging.getLogger("uvicorn.error")

FrameSink = Callable[[CapturedFrame, int], None]


@dataclass(eq=False)
class PlaybackHandle:
    frames: tuple[CapturedFrame, ...]
    position: int = 0
    stopped: bool = False
    timer: Any = field(default=None, repr=False)

    @property
    def current(self) -> CapturedFrame:
        return self.frames[self.position]


class PlaybackLoop:
    def __init__(self, scheduler: Scheduler, on_frame: FrameSink | None = None,
                 interval: float = PLAYBACK_INTERVAL):
        self._scheduler = scheduler
        self._on_frame = on_frame
        self._interval = interval
        self._active: list[PlaybackHandle] = []

    @property
    def active_count(self) -> int:
        return len(self._active)

    def start(self, frames: Sequence[CapturedFrame]) -> PlaybackHandle:
        if not frames:
            raise ValueError("playback needs at least one frame")
        handle = PlaybackHandle(frames=tuple(frames))
        self._show(handle)
        handle.timer = self._scheduler.call_every(self._interval, lambda: self._advance(handle))
        self._active.append(handle)
        logger.info(f"[Playback] started over {len(handle.frames)} frames, {self.active_count} active")
        return handle

    def stop(self, handle: PlaybackHandle | None) -> None:
        if handle is None or handle.stopped:
            return
        handle.stopped = True
        cancel_handle(handle.timer)
        handle.timer = None
        if handle in self._active:
            self._active.remove(handle)
        logger.info(f"[Playback] stopped, {self.active_count} active")

    def stop_all(self) -> None:
        for handle in list(self._active):
            self.stop(handle)

    def _advance(self, handle: PlaybackHandle) -> None:
        if handle.stopped:
            return
        handle.position = (handle.position + 1) % len(handle.frames)
        self._show(handle)

    def _show(self, handle: PlaybackHandle) -> None:
        if self._on_frame is not None:
            self._on_frame(handle.current, handle.position)
