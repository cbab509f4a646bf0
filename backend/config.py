import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")
load_dotenv(Path(__file__).resolve().parent / ".env")

BASE_DIR = Path(__file__).resolve().parent

# Face landmarker
LANDMARKER_PATH = BASE_DIR / os.getenv("LANDMARKER_PATH", "weights/face_landmarker.task")
MAX_NUM_FACES = 1
MIN_DETECTION_CONFIDENCE = float(os.getenv("MIN_DETECTION_CONFIDENCE", "0.5"))
MIN_PRESENCE_CONFIDENCE = float(os.getenv("MIN_PRESENCE_CONFIDENCE", "0.5"))
MIN_TRACKING_CONFIDENCE = float(os.getenv("MIN_TRACKING_CONFIDENCE", "0.5"))

# Camera
CAMERA_INDEX = int(os.getenv("CAMERA_INDEX", "0"))
CAMERA_WIDTH = 640
CAMERA_HEIGHT = 480

# Session timing (seconds)
COUNTDOWN_MESSAGES = ["2", "1", "Go!"]
COUNTDOWN_INTERVAL = float(os.getenv("COUNTDOWN_INTERVAL", "1.0"))
CAPTURE_FRAMES = 3
CAPTURE_INTERVAL = float(os.getenv("CAPTURE_INTERVAL", "0.5"))
PLAYBACK_INTERVAL = float(os.getenv("PLAYBACK_INTERVAL", "0.2"))
OUTBOX_PLAYBACK_BACKLOG = int(os.getenv("OUTBOX_PLAYBACK_BACKLOG", "4"))
COOLDOWN_SECONDS = float(os.getenv("COOLDOWN_SECONDS", "1.0"))

# Overlay text
NO_FACE_TEXT = "No face detected"
LOOKING_TEXT = "Looking for face..."
INSUFFICIENT_FRAMES_TEXT = "Not enough frames."
START_PROMPT_TEXT = "Press S to start"

# Overlay drawing (BGR)
OVERLAY_COLOR = (0, 0, 255)
OVERLAY_FONT_SCALE = 1.4
OVERLAY_THICKNESS = 3
OVERLAY_BASELINE_Y = 80
PREVIEW_WIDTH = 320
PREVIEW_HEIGHT = 240

# Server
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
