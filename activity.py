"""Speaking/paused inference from successive partial transcripts.

The transcription service re-punctuates and slightly re-words the same
audio between calls, so only growth above a word or character threshold
counts as new speech. When no such growth is seen for ``pause_after_ms``
the speaker is considered paused (reading or thinking).
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from config import LiveSettings
from models import EpochToken, LiveState, PartialTranscript
from scheduling import Countdown

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Case-fold, strip punctuation and collapse whitespace."""
    text = _PUNCTUATION.sub("", text.casefold())
    return _WHITESPACE.sub(" ", text).strip()


def count_words(text: str) -> int:
    return len(text.split())


class SpeechActivityDetector:
    def __init__(
        self,
        state: LiveState,
        pause_countdown: Countdown,
        settings: LiveSettings | None = None,
        on_change: Callable[[bool], None] | None = None,
    ) -> None:
        self._state = state
        self._countdown = pause_countdown
        self._settings = settings or LiveSettings()
        self._on_change = on_change

    def is_qualifying_change(self, previous: str, current: str) -> bool:
        prev_norm = normalize(previous)
        new_norm = normalize(current)
        if prev_norm == new_norm:
            return False
        word_increase = count_words(new_norm) - count_words(prev_norm)
        char_increase = len(new_norm) - len(prev_norm)
        return (
            word_increase > self._settings.qualifying_word_increase
            or char_increase > self._settings.qualifying_char_increase
        )

    def observe(self, text: str, now_ms: int) -> bool:
        """Record a new transcript and return whether it is a qualifying change."""
        state = self._state
        baseline = state.resume_baseline
        if baseline is not None:
            # First transcript after resume is cumulative; trust it outright.
            state.resume_baseline = None
            qualifying = len(text) > len(baseline) + self._settings.resume_char_margin
        else:
            qualifying = self.is_qualifying_change(state.transcript.text, text)

        state.transcript = PartialTranscript(text=text, captured_at_ms=now_ms, word_count=count_words(text))

        if qualifying:
            self.mark_speaking(now_ms)
        elif (
            not state.activity.is_paused
            and now_ms - state.activity.last_change_at_ms > self._settings.pause_after_ms
        ):
            self._enter_pause(now_ms)
        return qualifying

    def mark_speaking(self, now_ms: int) -> None:
        activity = self._state.activity
        was_paused = activity.is_paused
        activity.is_paused = False
        activity.last_change_at_ms = now_ms
        token = self._state.token()
        self._countdown.arm(
            self._settings.pause_after_ms / 1000.0,
            lambda: self._on_pause_elapsed(token, now_ms + self._settings.pause_after_ms),
        )
        if was_paused:
            self._notify(False)

    def reset(self, now_ms: int) -> None:
        """Forget pause state, e.g. on resume. Does not arm the countdown."""
        self._countdown.cancel()
        activity = self._state.activity
        was_paused = activity.is_paused
        activity.is_paused = False
        activity.last_change_at_ms = now_ms
        activity.paused_at_ms = 0
        if was_paused:
            self._notify(False)

    def _on_pause_elapsed(self, token: EpochToken, fired_at_ms: int) -> None:
        if not self._state.is_current(token):
            logger.debug("Discarding pause countdown from a previous segment")
            return
        if not self._state.activity.is_paused:
            self._enter_pause(fired_at_ms)

    def _enter_pause(self, now_ms: int) -> None:
        self._countdown.cancel()
        activity = self._state.activity
        activity.is_paused = True
        activity.paused_at_ms = now_ms
        logger.debug("No new speech for %d ms, speaker paused", now_ms - activity.last_change_at_ms)
        self._notify(True)

    def _notify(self, is_paused: bool) -> None:
        if self._on_change:
            self._on_change(is_paused)
