"""
Session state machine for the photo booth.

Phases run IDLE -> COUNTING_DOWN -> CAPTURING -> REVIEWING -> COOLING_DOWN -> IDLE.
Only IDLE reacts to live detection; every later transition is driven by timers
that this class alone schedules and cancels. All methods must be called from
the event loop thread.
"""

import logging
from functools import partial
from typing import Callable, Sequence

from config import (
    CAPTURE_FRAMES, CAPTURE_INTERVAL, COOLDOWN_SECONDS, COUNTDOWN_INTERVAL, COUNTDOWN_MESSAGES,
    INSUFFICIENT_FRAMES_TEXT, LOOKING_TEXT, NO_FACE_TEXT,
)
from processing.overlay import DisplaySurface
from processing.playback import PlaybackLoop
from processing.scheduler import Scheduler, cancel_handle
from schemas.messages import DetectionResult
from state.frame_buffer import FrameBuffer
from state.session import BoothPhase, InsufficientFrames, Session

logger = logging.getLogger("uvicorn.error")

TransitionListener = Callable[[BoothPhase, BoothPhase, Session], None]
ErrorListener = Callable[[Exception, Session], None]


class SessionStateMachine:
    def __init__(
        self,
        scheduler: Scheduler,
        surface: DisplaySurface,
        playback: PlaybackLoop,
        countdown_messages: Sequence[str] = COUNTDOWN_MESSAGES,
        countdown_interval: float = COUNTDOWN_INTERVAL,
        capture_interval: float = CAPTURE_INTERVAL,
        cooldown_seconds: float = COOLDOWN_SECONDS,
        on_transition: TransitionListener | None = None,
        on_error: ErrorListener | None = None,
    ):
        if not countdown_messages:
            raise ValueError("countdown needs at least one message")
        self.scheduler = scheduler
        self.surface = surface
        self.playback = playback
        self.countdown_messages = list(countdown_messages)
        self.countdown_interval = countdown_interval
        self.capture_interval = capture_interval
        self.cooldown_seconds = cooldown_seconds
        self.on_transition = on_transition
        self.on_error = on_error

        self.session = Session()
        self.running = False

    @property
    def phase(self) -> BoothPhase:
        return self.session.phase

    # ---- host controls ----

    def start_session(self) -> Session:
        """(Re)start the booth: drop every pending timer and begin a fresh session in IDLE."""
        self._teardown()
        self.session = Session(frame_buffer=FrameBuffer(CAPTURE_FRAMES), overlay_text=NO_FACE_TEXT)
        self.running = True
        logger.info("[Session] started, waiting for face")
        return self.session

    def stop(self) -> None:
        self._teardown()
        self.running = False
        logger.info("[Session] stopped")

    def _teardown(self) -> None:
        session = self.session
        for handle in session.timer_handles():
            cancel_handle(handle)
        session.countdown_timer = None
        session.capture_timer = None
        session.review_timer = None
        session.cooldown_timer = None
        self._stop_playback(session)
        # Loops left over from earlier sessions are stale too
        self.playback.stop_all()
        session.frame_buffer.clear()

    # ---- detection ----

    def on_detection(self, result: DetectionResult) -> None:
        if not self.running:
            return
        session = self.session
        if session.phase != BoothPhase.IDLE:
            return

        if result.face_count == 0:
            session.overlay_text = NO_FACE_TEXT
        else:
            self._enter_counting_down(session)

    # ---- phases ----

    def _transition(self, session: Session, phase: BoothPhase) -> BoothPhase:
        previous = session.phase
        session.phase = phase
        logger.info(f"[Session] {previous.value} -> {phase.value}")
        return previous

    def _announce(self, session: Session, previous: BoothPhase) -> None:
        # Runs after the new phase has scheduled its timer
        if self.on_transition is not None:
            self.on_transition(previous, session.phase, session)

    def _is_current(self, session: Session, phase: BoothPhase) -> bool:
        if session is not self.session or session.phase != phase:
            logger.debug(f"[Session] ignoring stale {phase.value} callback")
            return False
        return True

    def _enter_counting_down(self, session: Session) -> None:
        cancel_handle(session.countdown_timer)
        session.countdown_index = 0
        session.overlay_text = self.countdown_messages[0]
        logger.info(f"Countdown: {session.overlay_text}")
        previous = self._transition(session, BoothPhase.COUNTING_DOWN)
        session.countdown_timer = self.scheduler.call_every(
            self.countdown_interval, partial(self._countdown_tick, session)
        )
        self._announce(session, previous)

    def _countdown_tick(self, session: Session) -> None:
        if not self._is_current(session, BoothPhase.COUNTING_DOWN):
            return
        session.countdown_index += 1
        if session.countdown_index < len(self.countdown_messages):
            session.overlay_text = self.countdown_messages[session.countdown_index]
            logger.info(f"Countdown: {session.overlay_text}")
            return

        cancel_handle(session.countdown_timer)
        session.countdown_timer = None
        session.overlay_text = ""
        self._enter_capturing(session)

    def _enter_capturing(self, session: Session) -> None:
        # The previous preview must not keep cycling while its buffer is refilled
        self._stop_playback(session)
        cancel_handle(session.capture_timer)
        session.frame_buffer.clear()
        session.shots_taken = 0
        session.preview_text = ""
        previous = self._transition(session, BoothPhase.CAPTURING)
        session.capture_timer = self.scheduler.call_every(
            self.capture_interval, partial(self._capture_tick, session)
        )
        self._announce(session, previous)

    def _capture_tick(self, session: Session) -> None:
        if not self._is_current(session, BoothPhase.CAPTURING):
            return
        session.shots_taken += 1
        frame = self.surface.capture(session.shots_taken - 1)
        if frame is None:
            logger.warning(f"[Session] shot #{session.shots_taken} lost: nothing painted on the surface")
        else:
            session.frame_buffer.append(frame)
            logger.info(f"Captured photo #{session.shots_taken}")

        if session.shots_taken >= CAPTURE_FRAMES:
            cancel_handle(session.capture_timer)
            session.capture_timer = None
            self._enter_reviewing(session)

    def _enter_reviewing(self, session: Session) -> None:
        previous = self._transition(session, BoothPhase.REVIEWING)
        error = None
        try:
            if len(session.frame_buffer) < CAPTURE_FRAMES:
                raise InsufficientFrames(len(session.frame_buffer))
            session.playback = self.playback.start(session.frame_buffer.snapshot())
        except InsufficientFrames as exc:
            logger.warning(f"[Session] {exc}, skipping playback")
            session.preview_text = INSUFFICIENT_FRAMES_TEXT
            error = exc

        session.review_timer = self.scheduler.call_soon(partial(self._review_done, session))
        self._announce(session, previous)
        if error is not None and self.on_error is not None:
            self.on_error(error, session)

    def _review_done(self, session: Session) -> None:
        if not self._is_current(session, BoothPhase.REVIEWING):
            return
        session.review_timer = None
        self._enter_cooling_down(session)

    def _enter_cooling_down(self, session: Session) -> None:
        session.overlay_text = LOOKING_TEXT
        previous = self._transition(session, BoothPhase.COOLING_DOWN)
        session.cooldown_timer = self.scheduler.call_later(
            self.cooldown_seconds, partial(self._cooldown_done, session)
        )
        self._announce(session, previous)

    def _cooldown_done(self, session: Session) -> None:
        if not self._is_current(session, BoothPhase.COOLING_DOWN):
            return
        session.cooldown_timer = None
        session.overlay_text = ""
        session.frame_buffer.clear()
        previous = self._transition(session, BoothPhase.IDLE)
        self._announce(session, previous)

    def _stop_playback(self, session: Session) -> None:
        if session.playback is not None:
            self.playback.stop(session.playback)
            session.playback = None
