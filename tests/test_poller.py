"""Tests for TranscriptionPoller gating and result handling."""

from __future__ import annotations

import threading

from config import LiveSettings
from errors import NETWORK_ERROR, TranscriptionError
from models import LiveState, SessionState
from poller import PollOutcome, TranscriptionPoller

BIG_AUDIO = b"\x00" * 20000


class FakeClock:
    def __init__(self, now_ms: int = 100_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FakeCapture:
    def __init__(self, audio: bytes = BIG_AUDIO, level: float = 0.2) -> None:
        self.audio = audio
        self.level = level
        self.snapshots = 0

    def snapshot(self) -> bytes:
        self.snapshots += 1
        return self.audio

    def amplitude(self) -> float:
        return self.level


class FakeTranscriber:
    def __init__(self, *results) -> None:  # noqa: ANN002
        self.results = list(results)
        self.calls: list[bytes] = []
        self.before_return = None

    def transcribe(self, audio: bytes) -> str:
        self.calls.append(audio)
        if self.before_return is not None:
            self.before_return()
        result = self.results.pop(0) if self.results else ""
        if isinstance(result, Exception):
            raise result
        return result


def _make(capture=None, transcriber=None, clock=None):  # noqa: ANN001
    state = LiveState()
    state.reset(0)
    state.session.state = SessionState.RECORDING
    clock = clock or FakeClock()
    applied: list[tuple[str, int]] = []
    poller = TranscriptionPoller(
        state,
        capture or FakeCapture(),
        transcriber or FakeTranscriber("hello there"),
        lambda text, at: applied.append((text, at)),
        lock=threading.RLock(),
        settings=LiveSettings(),
        clock=clock,
    )
    return poller, state, clock, applied


# ---------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------

def test_poll_transcribes_and_applies_result() -> None:
    transcriber = FakeTranscriber("  hello there  ")
    poller, state, clock, applied = _make(transcriber=transcriber)

    assert poller.poll() == PollOutcome.APPLIED

    assert transcriber.calls == [BIG_AUDIO]
    assert applied == [("hello there", clock.now_ms)]
    assert state.last_poll_at_ms == clock.now_ms


def test_empty_result_changes_nothing() -> None:
    poller, state, _, applied = _make(transcriber=FakeTranscriber("   "))

    assert poller.poll() == PollOutcome.EMPTY
    assert applied == []
    assert state.last_poll_at_ms == 0


# ---------------------------------------------------------------
# Gates
# ---------------------------------------------------------------

def test_not_recording_skips_everything() -> None:
    capture = FakeCapture()
    poller, state, _, _ = _make(capture=capture)
    state.session.state = SessionState.PAUSED

    assert poller.poll() == PollOutcome.NOT_RECORDING
    assert capture.snapshots == 0


def test_poll_too_soon_after_last_success_is_skipped() -> None:
    transcriber = FakeTranscriber("one", "two")
    poller, _, clock, applied = _make(transcriber=transcriber)
    assert poller.poll() == PollOutcome.APPLIED

    clock.advance(1499)
    assert poller.poll() == PollOutcome.TOO_SOON
    clock.advance(1)
    assert poller.poll() == PollOutcome.APPLIED
    assert [text for text, _ in applied] == ["one", "two"]


def test_small_snapshot_is_skipped() -> None:
    transcriber = FakeTranscriber("hello")
    poller, _, _, _ = _make(capture=FakeCapture(audio=b"\x00" * 100), transcriber=transcriber)

    assert poller.poll() == PollOutcome.TOO_SHORT
    assert transcriber.calls == []


def test_quiet_audio_is_skipped() -> None:
    transcriber = FakeTranscriber("hello")
    poller, _, _, _ = _make(capture=FakeCapture(level=0.001), transcriber=transcriber)

    assert poller.poll() == PollOutcome.TOO_QUIET
    assert transcriber.calls == []


def test_speaker_paused_is_skipped() -> None:
    transcriber = FakeTranscriber("hello")
    poller, state, clock, _ = _make(transcriber=transcriber)
    state.activity.is_paused = True
    state.activity.paused_at_ms = clock.now_ms - 9999

    assert poller.poll() == PollOutcome.SPEAKER_PAUSED
    assert transcriber.calls == []


def test_long_pause_forces_one_attempt_even_when_quiet() -> None:
    transcriber = FakeTranscriber("hello", "hello")
    capture = FakeCapture(level=0.0)
    poller, state, clock, applied = _make(capture=capture, transcriber=transcriber)
    state.activity.is_paused = True
    state.activity.paused_at_ms = clock.now_ms - 10_000

    assert poller.poll() == PollOutcome.APPLIED
    assert state.last_override_at_ms == clock.now_ms
    assert applied == [("hello", clock.now_ms)]

    clock.advance(2000)
    assert poller.poll() == PollOutcome.TOO_QUIET
    assert len(transcriber.calls) == 1


# ---------------------------------------------------------------
# Errors and stale results
# ---------------------------------------------------------------

def test_transcription_error_is_swallowed() -> None:
    transcriber = FakeTranscriber(TranscriptionError("offline", code=NETWORK_ERROR, retryable=True))
    poller, state, _, applied = _make(transcriber=transcriber)

    assert poller.poll() == PollOutcome.FAILED
    assert applied == []
    assert state.session.state == SessionState.RECORDING


def test_unexpected_exception_is_swallowed() -> None:
    poller, _, _, applied = _make(transcriber=FakeTranscriber(RuntimeError("boom")))

    assert poller.poll() == PollOutcome.FAILED
    assert applied == []


def test_result_arriving_after_pause_is_discarded() -> None:
    transcriber = FakeTranscriber("hello there")
    poller, state, _, applied = _make(transcriber=transcriber)

    def pause_mid_flight() -> None:
        state.segment_epoch += 1
        state.session.state = SessionState.PAUSED

    transcriber.before_return = pause_mid_flight

    assert poller.poll() == PollOutcome.STALE
    assert applied == []
    assert state.last_poll_at_ms == 0


def test_result_arriving_in_a_new_session_is_discarded() -> None:
    transcriber = FakeTranscriber("old words")
    poller, state, _, applied = _make(transcriber=transcriber)

    def restart_mid_flight() -> None:
        state.session_epoch += 1
        state.segment_epoch += 1

    transcriber.before_return = restart_mid_flight

    assert poller.poll() == PollOutcome.STALE
    assert applied == []
