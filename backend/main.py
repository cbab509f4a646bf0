import asyncio
import json
import logging
from contextlib import asynccontextmanager

import cv2
import numpy as np
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from config import FRONTEND_URL, LANDMARKER_PATH, OUTBOX_PLAYBACK_BACKLOG
from processing.face_detection import create_landmarker
from processing.overlay import DisplaySurface
from processing.pipeline import analyze_frame, process_frame
from processing.playback import PlaybackLoop
from processing.scheduler import AsyncioScheduler
from schemas.messages import InsufficientFramesResult, PhaseChanged, PlaybackFrame, StartAck
from state.frame_buffer import CapturedFrame
from state.machine import SessionStateMachine
from state.session import BoothPhase, InsufficientFrames, Session

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.landmarker_ready = LANDMARKER_PATH.exists()
    if app.state.landmarker_ready:
        logger.info(f"Face landmarker found at {LANDMARKER_PATH}. Server ready.")
    else:
        logger.warning(f"Face landmarker missing at {LANDMARKER_PATH}; sessions will fail to start")
    yield


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok", "landmarker_ready": app.state.landmarker_ready}


def enqueue_playback_frame(outbox: asyncio.Queue, frame: CapturedFrame, position: int) -> bool:
    """Queue a playback header and its bytes, unless the client has not drained earlier messages."""
    if outbox.qsize() >= OUTBOX_PLAYBACK_BACKLOG:
        return False
    outbox.put_nowait(PlaybackFrame(
        position=position,
        frame_index=frame.index,
        has_payload=frame.payload is not None,
    ).model_dump())
    if frame.payload is not None:
        outbox.put_nowait(frame.payload)
    return True


@app.websocket("/ws/booth")
async def booth_session(websocket: WebSocket):
    await websocket.accept()
    outbox: asyncio.Queue = asyncio.Queue()

    def on_playback_frame(frame: CapturedFrame, position: int):
        if not enqueue_playback_frame(outbox, frame, position):
            logger.debug(f"WS client behind, dropped playback frame {frame.index}")

    def on_transition(previous: BoothPhase, phase: BoothPhase, session: Session):
        outbox.put_nowait(PhaseChanged(
            previous=previous.value,
            phase=phase.value,
            overlay_text=session.overlay_text,
        ).model_dump())

    def on_error(exc: Exception, session: Session):
        if isinstance(exc, InsufficientFrames):
            outbox.put_nowait(InsufficientFramesResult(
                captured=exc.captured,
                required=exc.required,
                message=session.preview_text,
            ).model_dump())

    scheduler = AsyncioScheduler()
    surface = DisplaySurface()
    playback = PlaybackLoop(scheduler, on_frame=on_playback_frame)
    machine = SessionStateMachine(
        scheduler, surface, playback,
        on_transition=on_transition,
        on_error=on_error,
    )
    landmarker = create_landmarker()
    frame_count = 0
    latest_frame_bytes: bytes | None = None

    logger.info("WS booth session opened, landmarker created")

    async def reader():
        """Read commands and frames, keeping only the latest binary frame."""
        nonlocal latest_frame_bytes
        try:
            while True:
                message = await websocket.receive()

                if message.get("type") == "websocket.disconnect":
                    break

                if message.get("text") is not None:
                    try:
                        data = json.loads(message["text"])
                    except json.JSONDecodeError:
                        continue
                    command = data.get("type") if isinstance(data, dict) else None
                    if command in ("start", "reset"):
                        logger.info(f"WS {command} command received")
                        latest_frame_bytes = None
                        surface.clear()
                        session = machine.start_session()
                        outbox.put_nowait(StartAck(
                            phase=session.phase.value,
                            overlay_text=session.overlay_text,
                        ).model_dump())
                    elif command == "stop":
                        logger.info("WS stop command received")
                        machine.stop()
                        outbox.put_nowait({"type": "stop_ack"})

                if message.get("bytes") is not None:
                    # Always overwrite, only the latest frame matters
                    latest_frame_bytes = message["bytes"]

        except (WebSocketDisconnect, RuntimeError):
            pass

    async def processor():
        """Detect faces on the latest frame, skipping stale ones."""
        nonlocal latest_frame_bytes, frame_count
        try:
            while True:
                if latest_frame_bytes is None:
                    await asyncio.sleep(0.01)
                    continue

                jpeg_bytes = latest_frame_bytes
                latest_frame_bytes = None

                # Frames before the first start command are dropped
                if not machine.running:
                    continue

                frame = cv2.imdecode(
                    np.frombuffer(jpeg_bytes, np.uint8),
                    cv2.IMREAD_COLOR,
                )
                if frame is None:
                    outbox.put_nowait({"type": "error", "message": "Could not decode frame"})
                    continue

                frame_count += 1
                detection = await asyncio.to_thread(analyze_frame, frame, landmarker)
                result = process_frame(frame, detection, machine, surface, payload=jpeg_bytes)

                if frame_count <= 3 or frame_count % 30 == 0:
                    logger.info(f"WS frame #{frame_count} -> phase={result['phase']}, faces={result['face_count']}")

                outbox.put_nowait(result)

        except asyncio.CancelledError:
            pass

    async def writer():
        """Single sender for frame results, timer-driven status and playback frames."""
        try:
            while True:
                message = await outbox.get()
                if isinstance(message, bytes):
                    await websocket.send_bytes(message)
                else:
                    await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError):
            pass
        except asyncio.CancelledError:
            pass

    try:
        reader_task = asyncio.create_task(reader())
        processor_task = asyncio.create_task(processor())
        writer_task = asyncio.create_task(writer())

        # When reader finishes (disconnect), cancel the rest
        await reader_task
        for task in (processor_task, writer_task):
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    except (WebSocketDisconnect, RuntimeError) as e:
        logger.info(f"WS booth session ended: {type(e).__name__}: {e}")
    finally:
        machine.stop()
        logger.info(f"WS cleanup: processed {frame_count} frames, closing landmarker")
        landmarker.close()
