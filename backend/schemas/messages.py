from pydantic import BaseModel, Field


class DetectionResult(BaseModel):
    face_count: int = Field(ge=0)


class FrameResponse(BaseModel):
    type: str = "frame_result"
    running: bool
    phase: str
    overlay_text: str
    face_count: int | None = None
    frames_captured: int = 0


class PhaseChanged(BaseModel):
    type: str = "phase_changed"
    previous: str
    phase: str
    overlay_text: str


class InsufficientFramesResult(BaseModel):
    type: str = "insufficient_frames"
    captured: int
    required: int
    message: str


class PlaybackFrame(BaseModel):
    type: str = "playback_frame"
    position: int
    frame_index: int
    has_payload: bool


class StartAck(BaseModel):
    type: str = "start_ack"
    phase: str
    overlay_text: str
