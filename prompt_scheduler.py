"""Decides when the growing transcript deserves a fresh batch of reflection prompts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from config import LiveSettings
from errors import classify_exception, PROMPT_PROTOCOL_ERROR
from interfaces import PromptGenerator
from models import EpochToken, LiveState, PromptBatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromptRequest:
    transcript: str
    word_count: int
    token: EpochToken


class PromptScheduler:
    def __init__(
        self,
        state: LiveState,
        settings: LiveSettings | None = None,
        on_prompts: Optional[Callable[[PromptBatch], None]] = None,
    ) -> None:
        self._state = state
        self._settings = settings or LiveSettings()
        self._on_prompts = on_prompts

    def should_generate(self, qualifying: bool) -> bool:
        state = self._state
        trigger = state.trigger
        if trigger.is_generating or state.activity.is_paused:
            return False
        word_count = state.transcript.word_count
        if trigger.last_word_count_at_generation == 0:
            return word_count >= self._settings.first_prompt_words
        return qualifying and word_count >= trigger.last_word_count_at_generation + self._settings.prompt_word_step

    def consider(self, qualifying: bool) -> Optional[PromptRequest]:
        """Claim the single generation slot if the transcript warrants it."""
        if not self.should_generate(qualifying):
            return None
        self._state.trigger.is_generating = True
        transcript = self._state.transcript
        return PromptRequest(transcript=transcript.text, word_count=transcript.word_count, token=self._state.token())

    def complete(self, request: PromptRequest, batch: Optional[PromptBatch], now_ms: int = 0) -> bool:
        """Release the slot and apply ``batch`` if it is still relevant.

        Returns True when the batch replaced the displayed prompts.
        """
        state = self._state
        if request.token.session != state.session_epoch:
            logger.debug("Discarding prompts from a previous session")
            return False
        state.trigger.is_generating = False
        if batch is None:
            return False
        if not state.is_current(request.token):
            logger.debug("Discarding prompts issued before pause/resume")
            return False
        batch.word_count = request.word_count
        batch.created_at_ms = now_ms
        state.prompts = batch
        state.trigger.last_word_count_at_generation = request.word_count
        logger.info("Applied %d live prompts at %d words", len(batch), request.word_count)
        if self._on_prompts:
            self._on_prompts(batch)
        return True


def run_request(generator: PromptGenerator, request: PromptRequest) -> Optional[PromptBatch]:
    """Call the generator, turning any failure into ``None``."""
    try:
        return generator.generate_prompts(request.transcript)
    except Exception as exc:
        code, _ = classify_exception(exc, fallback=PROMPT_PROTOCOL_ERROR)
        logger.warning("Live prompt generation failed (%s): %s", code, exc)
        return None
