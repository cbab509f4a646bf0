from dataclasses import dataclass

import numpy as np

from config import CAPTURE_FRAMES


class CapacityExceeded(Exception):
    """Raised when a frame is appended to a full buffer.

    A capture timer firing after the burst is complete is a scheduling bug,
    so this is never handled as a user-facing error.
    """

    def __init__(self, capacity: int):
        super().__init__(f"frame buffer already holds {capacity} frames")
        self.capacity = capacity


@dataclass(frozen=True, eq=False)
class CapturedFrame:
    index: int
    image: np.ndarray
    captured_at: float
    payload: bytes | None = None


class FrameBuffer:
    """Ordered, bounded collection of the frames captured in one session."""

    def __init__(self, capacity: int = CAPTURE_FRAMES):
        self.capacity = capacity
        self._frames: list[CapturedFrame] = []

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def is_full(self) -> bool:
        return len(self._frames) >= self.capacity

    def append(self, frame: CapturedFrame) -> None:
        if self.is_full:
            raise CapacityExceeded(self.capacity)
        self._frames.append(frame)

    def clear(self) -> None:
        self._frames = []

    def snapshot(self) -> tuple[CapturedFrame, ...]:
        """Current frames in insertion order. The frames themselves are shared, not copied."""
        return tuple(self._frames)
