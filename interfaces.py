"""Protocol interfaces used by SessionController."""

from __future__ import annotations

from typing import Protocol

from config import LiveSettings
from models import PromptBatch


class AudioCapture(Protocol):
    def start(self) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def snapshot(self) -> bytes: ...

    def stop(self) -> bytes: ...

    def release(self) -> None: ...

    def amplitude(self) -> float: ...


class Transcriber(Protocol):
    def transcribe(self, audio: bytes) -> str: ...


class PromptGenerator(Protocol):
    def generate_prompts(self, transcript: str) -> PromptBatch: ...


class RecordingSink(Protocol):
    def handle(self, recording: bytes, transcript: str, elapsed_ms: int) -> None: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...

    def get_pause_hotkey(self) -> str: ...

    def get_live_transcription(self) -> bool: ...

    def set_live_transcription(self, enabled: bool) -> None: ...

    def get_live_settings(self) -> LiveSettings: ...
