"""Hand-off of a finished recording to disk."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)


class WavArchiveSink:
    """Write each finished recording as ``<stamp>.wav`` with a ``<stamp>.txt`` live transcript."""

    def __init__(self, directory: Path, clock: Callable[[], float] = time.time) -> None:
        self._directory = directory
        self._clock = clock

    def handle(self, recording: bytes, transcript: str, elapsed_ms: int) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        stamp = time.strftime("%Y%m%d-%H%M%S", time.localtime(self._clock()))
        wav_path = self._unique_path(stamp)
        wav_path.write_bytes(recording)
        if transcript.strip():
            wav_path.with_suffix(".txt").write_text(transcript.strip() + "\n", encoding="utf-8")
        logger.info("Saved %d ms recording to %s", elapsed_ms, wav_path)

    def _unique_path(self, stamp: str) -> Path:
        path = self._directory / f"{stamp}.wav"
        index = 1
        while path.exists():
            path = self._directory / f"{stamp}-{index}.wav"
            index += 1
        return path
