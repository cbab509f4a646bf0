import cv2
import numpy as np

from processing.face_detection import count_faces
from processing.overlay import DisplaySurface
from schemas.messages import DetectionResult, FrameResponse
from state.machine import SessionStateMachine


def analyze_frame(frame_bgr: np.ndarray, landmarker) -> DetectionResult:
    """Count faces in a BGR frame. Touches no session state, so it may run in a worker thread."""
    frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
    return count_faces(landmarker, frame_rgb)


def process_frame(
    frame_bgr: np.ndarray,
    detection: DetectionResult | None,
    machine: SessionStateMachine,
    surface: DisplaySurface,
    payload: bytes | None = None,
) -> dict:
    """Paint the frame and feed its detection to the session. Must run on the event loop thread."""
    surface.paint(frame_bgr, payload)
    if detection is not None:
        machine.on_detection(detection)

    session = machine.session
    return FrameResponse(
        running=machine.running,
        phase=session.phase.value,
        overlay_text=session.overlay_text,
        face_count=detection.face_count if detection is not None else None,
        frames_captured=len(session.frame_buffer),
    ).model_dump()
