"""Live-path tuning and a simple JSON-based config store."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveSettings:
    poll_interval_ms: int = 2000
    elapsed_interval_ms: int = 100
    min_poll_gap_ms: int = 1500
    # 0.5 s of 16 kHz mono PCM16 plus the WAV header
    min_snapshot_bytes: int = 16000
    quiet_amplitude: float = 0.01
    pause_after_ms: int = 6000
    pause_override_ms: int = 10000
    qualifying_word_increase: int = 6
    qualifying_char_increase: int = 40
    resume_char_margin: int = 10
    first_prompt_words: int = 10
    prompt_word_step: int = 20
    resume_settle_ms: int = 100
    transcribe_timeout_s: float = 5.0
    prompt_timeout_s: float = 6.0
    live_transcription_enabled: bool = True


def settings_from_dict(data: dict, base: LiveSettings | None = None) -> LiveSettings:
    """Override known ``LiveSettings`` fields; anything malformed keeps the default."""
    base = base or LiveSettings()
    overrides = {}
    for f in fields(LiveSettings):
        if f.name not in data:
            continue
        default = getattr(base, f.name)
        value = data[f.name]
        if isinstance(default, bool):
            if isinstance(value, bool):
                overrides[f.name] = value
        elif isinstance(default, int):
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                overrides[f.name] = value
        elif isinstance(default, float):
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
                overrides[f.name] = float(value)
        if f.name not in overrides:
            logger.warning("Ignoring invalid value for %s: %r", f.name, value)
    return replace(base, **overrides)


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "live_reflect" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._path.parent

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", ""))

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", "Key.f9"))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_pause_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("pause_hotkey", "Key.f10"))

    def get_live_transcription(self) -> bool:
        value = self._read_all().get("live_transcription")
        if isinstance(value, bool):
            return value
        return self.get_live_settings().live_transcription_enabled

    def set_live_transcription(self, enabled: bool) -> None:
        data = self._read_all()
        data["live_transcription"] = bool(enabled)
        self._write_all(data)

    def get_live_settings(self) -> LiveSettings:
        live = self._read_all().get("live", {})
        if not isinstance(live, dict):
            return LiveSettings()
        return settings_from_dict(live)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
