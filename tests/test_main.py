import asyncio
import json

import cv2
import numpy as np
from fastapi.testclient import TestClient

import main
from schemas.messages import DetectionResult
from state.frame_buffer import CapturedFrame


class DummyLandmarker:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def jpeg_bytes():
    ok, buf = cv2.imencode(".jpg", np.zeros((48, 64, 3), dtype=np.uint8))
    assert ok
    return buf.tobytes()


def receive_until(ws, kind, limit=20):
    for _ in range(limit):
        message = ws.receive_json()
        if message.get("type") == kind:
            return message
    raise AssertionError(f"no {kind} message received")


def fake_detector(face_count):
    return lambda frame, landmarker: DetectionResult(face_count=face_count)


def test_health():
    with TestClient(main.app) as client:
        r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert isinstance(body["landmarker_ready"], bool)


def test_ws_start_then_frame_without_face(monkeypatch):
    monkeypatch.setattr(main, "create_landmarker", DummyLandmarker)
    monkeypatch.setattr(main, "analyze_frame", fake_detector(0))

    with TestClient(main.app) as client:
        with client.websocket_connect("/ws/booth") as ws:
            ws.send_text(json.dumps({"type": "start"}))
            ack = receive_until(ws, "start_ack")
            assert ack["phase"] == "IDLE"
            assert ack["overlay_text"] == "No face detected"

            ws.send_bytes(jpeg_bytes())
            result = receive_until(ws, "frame_result")
            assert result["running"] is True
            assert result["phase"] == "IDLE"
            assert result["face_count"] == 0
            assert result["overlay_text"] == "No face detected"


def test_ws_face_starts_countdown(monkeypatch):
    monkeypatch.setattr(main, "create_landmarker", DummyLandmarker)
    monkeypatch.setattr(main, "analyze_frame", fake_detector(1))

    with TestClient(main.app) as client:
        with client.websocket_connect("/ws/booth") as ws:
            ws.send_text(json.dumps({"type": "start"}))
            receive_until(ws, "start_ack")

            ws.send_bytes(jpeg_bytes())
            changed = receive_until(ws, "phase_changed")
            assert changed["previous"] == "IDLE"
            assert changed["phase"] == "COUNTING_DOWN"
            assert changed["overlay_text"] == "2"

            result = receive_until(ws, "frame_result")
            assert result["phase"] == "COUNTING_DOWN"

            # restart mid-countdown goes straight back to IDLE
            ws.send_text(json.dumps({"type": "reset"}))
            ack = receive_until(ws, "start_ack")
            assert ack["phase"] == "IDLE"


def test_ws_bad_frame_and_stop(monkeypatch):
    monkeypatch.setattr(main, "create_landmarker", DummyLandmarker)
    monkeypatch.setattr(main, "analyze_frame", fake_detector(0))

    with TestClient(main.app) as client:
        with client.websocket_connect("/ws/booth") as ws:
            ws.send_text("not json")
            ws.send_text(json.dumps({"type": "start"}))
            receive_until(ws, "start_ack")

            ws.send_bytes(b"definitely not a jpeg")
            error = receive_until(ws, "error")
            assert error["message"] == "Could not decode frame"

            ws.send_text(json.dumps({"type": "stop"}))
            receive_until(ws, "stop_ack")


def test_playback_frames_dropped_when_client_is_behind():
    outbox = asyncio.Queue()
    frame = CapturedFrame(index=2, image=np.zeros((2, 2, 3), dtype=np.uint8), captured_at=0.0, payload=b"jpeg")

    assert main.enqueue_playback_frame(outbox, frame, position=2)
    header = outbox.get_nowait()
    assert header["type"] == "playback_frame"
    assert header["frame_index"] == 2
    assert header["has_payload"] is True
    assert outbox.get_nowait() == b"jpeg"

    for _ in range(main.OUTBOX_PLAYBACK_BACKLOG):
        outbox.put_nowait({"type": "frame_result"})
    assert not main.enqueue_playback_frame(outbox, frame, position=0)
    assert outbox.qsize() == main.OUTBOX_PLAYBACK_BACKLOG
