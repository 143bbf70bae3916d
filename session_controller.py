"""State-machine based orchestration of a live recording session."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from activity import SpeechActivityDetector
from config import LiveSettings
from errors import ARCHIVE_FAILED, CaptureUnavailableError
from interfaces import AudioCapture, PromptGenerator, RecordingSink, Transcriber
from models import EpochToken, LiveState, PromptBatch, Session, SessionState
from poller import TranscriptionPoller
from prompt_scheduler import PromptRequest, PromptScheduler, run_request
from scheduling import Countdown, Ticker, now_ms, spawn_daemon

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
ElapsedCallback = Callable[[int], None]
TranscriptCallback = Callable[[str], None]
ActivityCallback = Callable[[bool], None]
PromptsCallback = Callable[[PromptBatch], None]
ErrorCallback = Callable[[str, str], None]


class SessionController:
    def __init__(
        self,
        capture: AudioCapture,
        transcriber: Transcriber,
        prompt_generator: PromptGenerator,
        recording_sink: Optional[RecordingSink] = None,
        settings: Optional[LiveSettings] = None,
        clock: Callable[[], int] = now_ms,
        ticker_factory: Callable[..., Ticker] = Ticker,
        countdown_factory: Callable[..., Countdown] = Countdown,
        spawn: Callable[[Callable[[], None]], None] = spawn_daemon,
        on_state_change: Optional[StateCallback] = None,
        on_elapsed: Optional[ElapsedCallback] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_activity: Optional[ActivityCallback] = None,
        on_prompts: Optional[PromptsCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._capture = capture
        self._prompt_generator = prompt_generator
        self._recording_sink = recording_sink
        self._settings = settings or LiveSettings()
        self._clock = clock
        self._ticker_factory = ticker_factory
        self._spawn = spawn
        self._on_state_change = on_state_change
        self._on_elapsed = on_elapsed
        self._on_transcript = on_transcript
        self._on_activity = on_activity
        self._on_prompts = on_prompts
        self._on_error = on_error

        self._lock = threading.RLock()
        self._live = LiveState()
        self._live_enabled = self._settings.live_transcription_enabled
        self._elapsed_ticker: Optional[Ticker] = None
        self._poll_ticker: Optional[Ticker] = None
        self._pause_countdown = countdown_factory("speech-pause", self._lock)
        self._settle_countdown = countdown_factory("resume-settle", self._lock)

        self._detector = SpeechActivityDetector(
            self._live, self._pause_countdown, self._settings, on_change=self._emit_activity
        )
        self._scheduler = PromptScheduler(self._live, self._settings, on_prompts=self._emit_prompts)
        self._poller = TranscriptionPoller(
            self._live,
            capture,
            transcriber,
            self._apply_transcript,
            lock=self._lock,
            settings=self._settings,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Observable values
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._live.session.state

    @property
    def elapsed_ms(self) -> int:
        with self._lock:
            return self._live.session.elapsed_ms(self._clock())

    @property
    def transcript_text(self) -> str:
        return self._live.transcript.text

    @property
    def is_user_paused(self) -> bool:
        return self._live.activity.is_paused

    @property
    def prompts(self) -> PromptBatch:
        return self._live.prompts

    @property
    def live_transcription_enabled(self) -> bool:
        return self._live_enabled

    @property
    def live_state(self) -> LiveState:
        return self._live

    @property
    def poller(self) -> TranscriptionPoller:
        return self._poller

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_session(self) -> None:
        with self._lock:
            if self.state != SessionState.IDLE:
                return
            now = self._clock()
            self._live.session_epoch += 1
            self._live.segment_epoch += 1
            self._live.reset(now)
            try:
                self._capture.start()
            except CaptureUnavailableError as exc:
                logger.error("Cannot start session: %s", exc.message)
                self._emit_error(exc.code, exc.message)
                raise
            except Exception as exc:
                error = CaptureUnavailableError(str(exc))
                logger.error("Cannot start session: %s", error.message)
                self._emit_error(error.code, error.message)
                raise error from exc

            self._live.session = Session(started_at_ms=now, resumed_at_ms=now)
            self._transition(SessionState.RECORDING)
            self._arm_elapsed_ticker()
            if self._live_enabled:
                self._arm_poll_ticker()
            logger.info("Session %d started", self._live.session_epoch)
            self._emit_all()

    def pause_session(self) -> None:
        with self._lock:
            if self.state != SessionState.RECORDING:
                return
            now = self._clock()
            live = self._live
            live.resume_baseline = live.transcript.text or None
            live.transcribing_before_pause = self._poll_ticker is not None
            self._disarm_timers()
            live.session.paused_accumulated_ms += max(0, now - live.session.resumed_at_ms)
            live.segment_epoch += 1
            self._safe_call(self._capture.pause)
            self._transition(SessionState.PAUSED)
            logger.info("Session %d paused at %d ms", live.session_epoch, live.session.paused_accumulated_ms)
            self._emit_elapsed()

    def resume_session(self) -> None:
        with self._lock:
            if self.state != SessionState.PAUSED:
                return
            now = self._clock()
            live = self._live
            self._safe_call(self._capture.resume)
            live.session.resumed_at_ms = now
            live.segment_epoch += 1
            self._transition(SessionState.RECORDING)
            self._detector.reset(now)
            self._arm_elapsed_ticker()
            if live.transcribing_before_pause:
                live.transcribing_before_pause = False
                token = live.token()
                self._settle_countdown.arm(
                    self._settings.resume_settle_ms / 1000.0,
                    lambda: self._resume_polling(token),
                )
            logger.info("Session %d resumed", live.session_epoch)

    def stop_session(self) -> Optional[bytes]:
        """Finalize the recording, hand it off and return to idle."""
        with self._lock:
            if self.state not in (SessionState.RECORDING, SessionState.PAUSED):
                return None
            now = self._clock()
            live = self._live
            if self.state == SessionState.RECORDING:
                live.session.paused_accumulated_ms += max(0, now - live.session.resumed_at_ms)
            self._disarm_timers()
            self._transition(SessionState.STOPPING)
            live.session_epoch += 1
            transcript = live.transcript.text
            elapsed = live.session.paused_accumulated_ms
            try:
                recording = self._capture.stop()
            except Exception as exc:
                logger.exception("Failed to finalize recording")
                self._safe_call(self._capture.release)
                self._emit_error(ARCHIVE_FAILED, str(exc))
                self._finish_reset()
                return None

        if self._recording_sink is not None:
            try:
                self._recording_sink.handle(recording, transcript, elapsed)
            except Exception as exc:
                logger.exception("Recording hand-off failed")
                self._emit_error(ARCHIVE_FAILED, str(exc))

        with self._lock:
            if self.state == SessionState.STOPPING:
                self._finish_reset()
        logger.info("Session stopped after %d ms", elapsed)
        return recording

    def cancel_session(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self.state == SessionState.IDLE:
                return
            self._disarm_timers()
            self._live.session_epoch += 1
            self._live.segment_epoch += 1
            self._safe_call(self._capture.release)
            logger.info("Session cancelled: %s", reason)
            self._finish_reset()

    def set_live_transcription(self, enabled: bool) -> None:
        with self._lock:
            self._live_enabled = enabled
            if self.state == SessionState.RECORDING:
                if enabled and self._poll_ticker is None:
                    self._arm_poll_ticker()
                elif not enabled:
                    self._settle_countdown.cancel()
                    self._disarm_poll_ticker()
            elif self.state == SessionState.PAUSED:
                self._live.transcribing_before_pause = enabled

    # ------------------------------------------------------------------
    # Live path
    # ------------------------------------------------------------------

    def _apply_transcript(self, text: str, at_ms: int) -> None:
        qualifying = self._detector.observe(text, at_ms)
        if self._on_transcript:
            self._on_transcript(text)
        request = self._scheduler.consider(qualifying)
        if request is not None:
            self._spawn(lambda: self._generate(request))

    def _generate(self, request: PromptRequest) -> None:
        batch = run_request(self._prompt_generator, request)
        with self._lock:
            self._scheduler.complete(request, batch, self._clock())

    def _resume_polling(self, token: EpochToken) -> None:
        if not self._live.is_current(token):
            return
        if self._live_enabled and self._poll_ticker is None:
            self._arm_poll_ticker()

    def _tick_elapsed(self) -> None:
        with self._lock:
            if self.state != SessionState.RECORDING:
                return
            self._emit_elapsed()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _arm_elapsed_ticker(self) -> None:
        if self._elapsed_ticker is not None:
            self._elapsed_ticker.stop()
        self._elapsed_ticker = self._ticker_factory(
            "elapsed", self._settings.elapsed_interval_ms / 1000.0, self._tick_elapsed
        )
        self._elapsed_ticker.start()

    def _arm_poll_ticker(self) -> None:
        self._disarm_poll_ticker()
        self._poll_ticker = self._ticker_factory(
            "transcription", self._settings.poll_interval_ms / 1000.0, self._poller.poll
        )
        self._poll_ticker.start()

    def _disarm_poll_ticker(self) -> None:
        if self._poll_ticker is not None:
            self._poll_ticker.stop()
            self._poll_ticker = None

    def _disarm_timers(self) -> None:
        if self._elapsed_ticker is not None:
            self._elapsed_ticker.stop()
            self._elapsed_ticker = None
        self._disarm_poll_ticker()
        self._pause_countdown.cancel()
        self._settle_countdown.cancel()

    def _finish_reset(self) -> None:
        self._transition(SessionState.IDLE)
        self._live.reset(self._clock())
        self._emit_all()

    def _safe_call(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception:
            logger.exception("Audio capture call %s failed", getattr(fn, "__name__", fn))

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._live.session.state
        if from_state == to_state:
            return
        self._live.session.state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)

    def _emit_all(self) -> None:
        self._emit_elapsed()
        if self._on_transcript:
            self._on_transcript(self._live.transcript.text)
        self._emit_activity(self._live.activity.is_paused)
        self._emit_prompts(self._live.prompts)

    def _emit_elapsed(self) -> None:
        if self._on_elapsed:
            self._on_elapsed(self._live.session.elapsed_ms(self._clock()))

    def _emit_activity(self, is_paused: bool) -> None:
        if self._on_activity:
            self._on_activity(is_paused)

    def _emit_prompts(self, batch: PromptBatch) -> None:
        if self._on_prompts:
            self._on_prompts(batch)

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)
