import time

import cv2
import numpy as np

from config import (
    OVERLAY_BASELINE_Y, OVERLAY_COLOR, OVERLAY_FONT_SCALE, OVERLAY_THICKNESS,
    PREVIEW_HEIGHT, PREVIEW_WIDTH,
)
from state.frame_buffer import CapturedFrame


class DisplaySurface:
    """Holds the most recently painted video frame so it can be captured."""

    def __init__(self):
        self._frame: np.ndarray | None = None
        self._payload: bytes | None = None

    @property
    def painted(self) -> bool:
        return self._frame is not None

    def paint(self, frame: np.ndarray, payload: bytes | None = None) -> None:
        self._frame = frame
        self._payload = payload

    def clear(self) -> None:
        self._frame = None
        self._payload = None

    def capture(self, index: int) -> CapturedFrame | None:
        """Snapshot the surface. Returns None if nothing has been painted yet."""
        if self._frame is None:
            return None
        image = self._frame.copy()
        image.setflags(write=False)
        return CapturedFrame(index=index, image=image, captured_at=time.monotonic(), payload=self._payload)


def render(frame: np.ndarray, overlay_text: str) -> np.ndarray:
    """Draw the status text centred near the top of a copy of the frame."""
    out = frame.copy()
    if not overlay_text:
        return out

    font = cv2.FONT_HERSHEY_SIMPLEX
    (text_w, _), _ = cv2.getTextSize(overlay_text, font, OVERLAY_FONT_SCALE, OVERLAY_THICKNESS)
    x = max(0, (out.shape[1] - text_w) // 2)
    cv2.putText(out, overlay_text, (x, OVERLAY_BASELINE_Y), font, OVERLAY_FONT_SCALE,
                OVERLAY_COLOR, OVERLAY_THICKNESS, cv2.LINE_AA)
    return out


def render_preview(frame: CapturedFrame) -> np.ndarray:
    return cv2.resize(frame.image, (PREVIEW_WIDTH, PREVIEW_HEIGHT), interpolation=cv2.INTER_AREA)


def blank_frame(width: int, height: int) -> np.ndarray:
    return np.zeros((height, width, 3), dtype=np.uint8)
