import numpy as np
import mediapipe as mp
from config import (
    LANDMARKER_PATH, MAX_NUM_FACES,
    MIN_DETECTION_CONFIDENCE, MIN_PRESENCE_CONFIDENCE, MIN_TRACKING_CONFIDENCE,
)
from schemas.messages import DetectionResult


def create_landmarker():
    """Create a new MediaPipe FaceLandmarker in IMAGE mode (thread-safe, per-session)."""
    BaseOptions = mp.tasks.BaseOptions
    FaceLandmarker = mp.tasks.vision.FaceLandmarker
    FaceLandmarkerOptions = mp.tasks.vision.FaceLandmarkerOptions
    VisionRunningMode = mp.tasks.vision.RunningMode

    options = FaceLandmarkerOptions(
        base_options=BaseOptions(model_asset_path=str(LANDMARKER_PATH)),
        running_mode=VisionRunningMode.IMAGE,
        num_faces=MAX_NUM_FACES,
        min_face_detection_confidence=MIN_DETECTION_CONFIDENCE,
        min_face_presence_confidence=MIN_PRESENCE_CONFIDENCE,
        min_tracking_confidence=MIN_TRACKING_CONFIDENCE,
    )
    return FaceLandmarker.create_from_options(options)


def count_faces(landmarker, frame_rgb: np.ndarray) -> DetectionResult:
    """Run face detection on an RGB frame and report how many faces were found."""
    mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
    result = landmarker.detect(mp_image)
    return DetectionResult(face_count=len(result.face_landmarks or []))
