"""Run the booth locally in an OpenCV window.

Usage:
    python booth.py [--camera 0]

Press 's' to start (or restart) a session, 'q' to quit.
"""

import argparse
import asyncio
import logging

import cv2
import numpy as np

from config import CAMERA_HEIGHT, CAMERA_INDEX, CAMERA_WIDTH, START_PROMPT_TEXT
from processing.camera import Camera
from processing.face_detection import create_landmarker
from processing.overlay import DisplaySurface, blank_frame, render, render_preview
from processing.pipeline import analyze_frame, process_frame
from processing.playback import PlaybackLoop
from processing.scheduler import AsyncioScheduler
from state.frame_buffer import CapturedFrame
from state.machine import SessionStateMachine

logger = logging.getLogger("uvicorn.error")

WINDOW_NAME = "Smile Booth"
PREVIEW_WINDOW_NAME = "Smile Booth Preview"


class PreviewSink:
    """Keeps the playback frame that should currently be on screen."""

    def __init__(self):
        self.frame: np.ndarray | None = None

    def __call__(self, frame: CapturedFrame, position: int) -> None:
        self.frame = render_preview(frame)


async def run_booth(camera_index: int = CAMERA_INDEX) -> None:
    scheduler = AsyncioScheduler()
    surface = DisplaySurface()
    preview = PreviewSink()
    playback = PlaybackLoop(scheduler, on_frame=preview)
    machine = SessionStateMachine(scheduler, surface, playback)
    camera = Camera(camera_index, CAMERA_WIDTH, CAMERA_HEIGHT)
    landmarker = create_landmarker()

    cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_AUTOSIZE)
    idle_screen = render(blank_frame(CAMERA_WIDTH, CAMERA_HEIGHT), START_PROMPT_TEXT)

    try:
        while True:
            if camera.started:
                frame = await asyncio.to_thread(camera.read)
                if frame is None:
                    logger.warning("[Booth] empty frame, retrying")
                    await asyncio.sleep(0.05)
                    continue
                detection = await asyncio.to_thread(analyze_frame, frame, landmarker)
                process_frame(frame, detection, machine, surface)
                cv2.imshow(WINDOW_NAME, render(frame, machine.session.overlay_text))
            else:
                cv2.imshow(WINDOW_NAME, idle_screen)
                await asyncio.sleep(0.03)

            if preview.frame is not None:
                cv2.imshow(PREVIEW_WINDOW_NAME, preview.frame)

            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord("s"):
                camera.start()
                surface.clear()
                preview.frame = None
                machine.start_session()

            # Let due session timers run between frames
            await asyncio.sleep(0)
    finally:
        machine.stop()
        camera.stop()
        landmarker.close()
        cv2.destroyAllWindows()


def main():
    p = argparse.ArgumentParser(description="Smile-detection photo booth")
    p.add_argument("--camera", type=int, default=CAMERA_INDEX, help="Camera device index")
    args = p.parse_args()

    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    asyncio.run(run_booth(args.camera))


if __name__ == "__main__":
    main()
