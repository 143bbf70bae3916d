"""Microphone capture with an append-only chunk buffer."""

from __future__ import annotations

import io
import logging
import threading
import time
import wave
from typing import Any, Optional

import numpy as np

from errors import CaptureUnavailableError
from models import AudioChunk

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


def pcm_to_wav(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Wrap raw PCM bytes in a complete WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


def rms_level(samples: np.ndarray) -> float:
    """Root-mean-square loudness of int16 samples, full scale = 1.0."""
    if samples.size == 0:
        return 0.0
    scaled = samples.astype(np.float32) / 32768.0
    return float(np.sqrt(np.mean(np.square(scaled))))


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        device: Optional[str] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self._stream: Any = None
        self._capturing = False
        self._lock = threading.Lock()
        self._chunks: list[AudioChunk] = []
        self._level = 0.0

    @property
    def chunk_count(self) -> int:
        with self._lock:
            return len(self._chunks)

    def start(self) -> None:
        with self._lock:
            if self._stream is not None:
                return
            if sd is None:
                raise CaptureUnavailableError("sounddevice is not installed")
            self._chunks = []
            self._level = 0.0
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    device=self.device,
                    callback=self._on_audio,
                )
                stream.start()
            except Exception as exc:
                raise CaptureUnavailableError(f"cannot open microphone: {exc}") from exc
            self._stream = stream
            self._capturing = True

    def pause(self) -> None:
        with self._lock:
            self._capturing = False
            self._level = 0.0

    def resume(self) -> None:
        with self._lock:
            if self._stream is not None:
                self._capturing = True

    def snapshot(self) -> bytes:
        with self._lock:
            chunks = list(self._chunks)
        return pcm_to_wav(b"".join(c.pcm16_bytes for c in chunks), self.sample_rate, self.channels)

    def stop(self) -> bytes:
        self._close_stream()
        recording = self.snapshot()
        with self._lock:
            self._chunks = []
        logger.info("Recorder stopped with %d bytes", len(recording))
        return recording

    def release(self) -> None:
        self._close_stream()
        with self._lock:
            self._chunks = []

    def amplitude(self) -> float:
        return self._level

    def _close_stream(self) -> None:
        with self._lock:
            stream = self._stream
            self._stream = None
            self._capturing = False
            self._level = 0.0
        if stream is not None:
            stream.stop()
            stream.close()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._capturing:
            return
        samples = np.asarray(indata, dtype=np.int16)
        level = rms_level(samples)
        chunk = AudioChunk(
            pcm16_bytes=samples.tobytes(),
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
            level=level,
        )
        with self._lock:
            if not self._capturing:
                return
            self._chunks.append(chunk)
            self._level = level
