"""Periodic live transcription of the growing recording."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable

from config import LiveSettings
from errors import classify_exception
from interfaces import AudioCapture, Transcriber
from models import LiveState, SessionState
from scheduling import now_ms

logger = logging.getLogger(__name__)

TranscriptCallback = Callable[[str, int], None]


class PollOutcome(str, Enum):
    NOT_RECORDING = "not_recording"
    TOO_SOON = "too_soon"
    TOO_SHORT = "too_short"
    TOO_QUIET = "too_quiet"
    SPEAKER_PAUSED = "speaker_paused"
    FAILED = "failed"
    EMPTY = "empty"
    STALE = "stale"
    APPLIED = "applied"


class TranscriptionPoller:
    def __init__(
        self,
        state: LiveState,
        capture: AudioCapture,
        transcriber: Transcriber,
        on_transcript: TranscriptCallback,
        lock: threading.RLock | None = None,
        settings: LiveSettings | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._state = state
        self._capture = capture
        self._transcriber = transcriber
        self._on_transcript = on_transcript
        self._lock = lock or threading.RLock()
        self._settings = settings or LiveSettings()
        self._clock = clock

    def poll(self) -> PollOutcome:
        """Run one tick: apply the gates, transcribe, hand the result on."""
        settings = self._settings
        with self._lock:
            state = self._state
            if state.session.state != SessionState.RECORDING:
                return PollOutcome.NOT_RECORDING
            now = self._clock()
            if state.last_poll_at_ms and now - state.last_poll_at_ms < settings.min_poll_gap_ms:
                return self._skip(PollOutcome.TOO_SOON)
            token = state.token()
            activity = state.activity
            override = (
                activity.is_paused
                and now - max(activity.paused_at_ms, state.last_override_at_ms) >= settings.pause_override_ms
            )

        audio = self._capture.snapshot()
        if len(audio) < settings.min_snapshot_bytes:
            return self._skip(PollOutcome.TOO_SHORT)
        if not override and self._capture.amplitude() < settings.quiet_amplitude:
            return self._skip(PollOutcome.TOO_QUIET)

        with self._lock:
            if not state.is_current(token):
                return PollOutcome.STALE
            if state.activity.is_paused:
                if not override:
                    return self._skip(PollOutcome.SPEAKER_PAUSED)
                logger.debug("Speaker paused for a long stretch, forcing a transcription")
                state.last_override_at_ms = now

        try:
            text = self._transcriber.transcribe(audio)
        except Exception as exc:
            code, _ = classify_exception(exc)
            logger.warning("Live transcription failed (%s): %s", code, exc)
            return PollOutcome.FAILED

        text = (text or "").strip()
        if not text:
            return PollOutcome.EMPTY

        with self._lock:
            if not state.is_current(token):
                logger.debug("Discarding transcript issued before the session changed")
                return PollOutcome.STALE
            done_at = self._clock()
            state.last_poll_at_ms = done_at
            self._on_transcript(text, done_at)
        return PollOutcome.APPLIED

    def _skip(self, outcome: PollOutcome) -> PollOutcome:
        logger.debug("Skipping live transcription: %s", outcome.value)
        return outcome
