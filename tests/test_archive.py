from __future__ import annotations

import time
from pathlib import Path

from archive import WavArchiveSink

FIXED = time.mktime((2026, 3, 14, 9, 26, 53, 0, 0, -1))


def test_writes_recording_and_transcript(tmp_path: Path) -> None:
    sink = WavArchiveSink(tmp_path / "recordings", clock=lambda: FIXED)

    sink.handle(b"RIFF....", "  a short entry  ", elapsed_ms=4200)

    wav = tmp_path / "recordings" / "20260314-092653.wav"
    assert wav.read_bytes() == b"RIFF...."
    assert wav.with_suffix(".txt").read_text(encoding="utf-8") == "a short entry\n"


def test_empty_transcript_writes_only_audio(tmp_path: Path) -> None:
    sink = WavArchiveSink(tmp_path, clock=lambda: FIXED)

    sink.handle(b"RIFF", "   ", elapsed_ms=0)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["20260314-092653.wav"]


def test_same_second_gets_unique_name(tmp_path: Path) -> None:
    sink = WavArchiveSink(tmp_path, clock=lambda: FIXED)

    sink.handle(b"one", "", elapsed_ms=0)
    sink.handle(b"two", "", elapsed_ms=0)

    assert (tmp_path / "20260314-092653.wav").read_bytes() == b"one"
    assert (tmp_path / "20260314-092653-1.wav").read_bytes() == b"two"
