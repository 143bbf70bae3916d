"""Core data models for the live session."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    PAUSED = "PAUSED"
    STOPPING = "STOPPING"


@dataclass
class AudioChunk:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0
    level: float = 0.0


@dataclass
class Session:
    """Recording clock. ``elapsed_ms`` excludes time spent paused."""

    state: SessionState = SessionState.IDLE
    started_at_ms: int = 0
    resumed_at_ms: int = 0
    paused_accumulated_ms: int = 0

    def elapsed_ms(self, now_ms: int) -> int:
        if self.state == SessionState.RECORDING:
            return self.paused_accumulated_ms + max(0, now_ms - self.resumed_at_ms)
        return self.paused_accumulated_ms


@dataclass
class PartialTranscript:
    text: str = ""
    captured_at_ms: int = 0
    word_count: int = 0


@dataclass
class ActivityState:
    is_paused: bool = False
    last_change_at_ms: int = 0
    paused_at_ms: int = 0


@dataclass
class PromptTrigger:
    last_word_count_at_generation: int = 0
    is_generating: bool = False


@dataclass
class ReflectionPrompt:
    prompt_text: str
    short_context: str = ""
    id: str = ""
    category: str = "live"


@dataclass
class PromptBatch:
    prompts: list[ReflectionPrompt] = field(default_factory=list)
    word_count: int = 0
    created_at_ms: int = 0

    def __len__(self) -> int:
        return len(self.prompts)


@dataclass(frozen=True)
class EpochToken:
    """Identifies the session and recording segment an async call was issued in."""

    session: int
    segment: int


@dataclass
class LiveState:
    """Mutable per-session state shared by the live-path components.

    Owned by ``SessionController``; every mutation happens under its lock.
    """

    session: Session = field(default_factory=Session)
    transcript: PartialTranscript = field(default_factory=PartialTranscript)
    activity: ActivityState = field(default_factory=ActivityState)
    trigger: PromptTrigger = field(default_factory=PromptTrigger)
    prompts: PromptBatch = field(default_factory=PromptBatch)
    session_epoch: int = 0
    segment_epoch: int = 0
    last_poll_at_ms: int = 0
    last_override_at_ms: int = 0
    resume_baseline: Optional[str] = None
    transcribing_before_pause: bool = False

    def token(self) -> EpochToken:
        return EpochToken(session=self.session_epoch, segment=self.segment_epoch)

    def is_current(self, token: EpochToken) -> bool:
        return token == self.token() and self.session.state == SessionState.RECORDING

    def reset(self, now_ms: int = 0) -> None:
        """Clear everything a new session must not inherit. Epochs survive."""
        self.session = Session()
        self.transcript = PartialTranscript()
        self.activity = ActivityState(last_change_at_ms=now_ms)
        self.trigger = PromptTrigger()
        self.prompts = PromptBatch()
        self.last_poll_at_ms = 0
        self.last_override_at_ms = 0
        self.resume_baseline = None
        self.transcribing_before_pause = False
