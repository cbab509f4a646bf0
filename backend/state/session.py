from enum import Enum
from dataclasses import dataclass, field
from typing import Any

from config import CAPTURE_FRAMES, NO_FACE_TEXT
from state.frame_buffer import FrameBuffer


class BoothPhase(str, Enum):
    IDLE = "IDLE"
    COUNTING_DOWN = "COUNTING_DOWN"
    CAPTURING = "CAPTURING"
    REVIEWING = "REVIEWING"
    COOLING_DOWN = "COOLING_DOWN"


class InsufficientFrames(Exception):
    """Fewer frames than required were present when review began."""

    def __init__(self, captured: int, required: int = CAPTURE_FRAMES):
        super().__init__(f"insufficient frames: captured {captured} of {required}")
        self.captured = captured
        self.required = required


@dataclass
class Session:
    phase: BoothPhase = BoothPhase.IDLE
    frame_buffer: FrameBuffer = field(default_factory=FrameBuffer)
    overlay_text: str = NO_FACE_TEXT

    # Shown in the preview area instead of the playback
    preview_text: str = ""

    # Countdown / capture progress
    countdown_index: int = 0
    shots_taken: int = 0

    # Live timer handles, owned by the phase that scheduled them
    countdown_timer: Any = None
    capture_timer: Any = None
    review_timer: Any = None
    cooldown_timer: Any = None
    playback: Any = None

    def timer_handles(self) -> list:
        return [
            h for h in (self.countdown_timer, self.capture_timer, self.review_timer, self.cooldown_timer)
            if h is not None
        ]
