"""Shared error codes, user-facing messages and exceptions."""

from __future__ import annotations

MIC_UNAVAILABLE = "MIC_UNAVAILABLE"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
PROMPT_PROTOCOL_ERROR = "PROMPT_PROTOCOL_ERROR"
ARCHIVE_FAILED = "ARCHIVE_FAILED"

ERROR_MESSAGES = {
    MIC_UNAVAILABLE: "Microphone is unavailable, check system permissions.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
    PROMPT_PROTOCOL_ERROR: "Prompt response format is invalid.",
    ARCHIVE_FAILED: "Recording could not be saved.",
}


class LiveSessionError(Exception):
    code = ASR_PROTOCOL_ERROR

    def __init__(self, message: str = "", code: str | None = None, retryable: bool = False) -> None:
        if code is not None:
            self.code = code
        self.message = message or ERROR_MESSAGES.get(self.code, "")
        self.retryable = retryable
        super().__init__(self.message)


class CaptureUnavailableError(LiveSessionError):
    code = MIC_UNAVAILABLE


class TranscriptionError(LiveSessionError):
    code = ASR_PROTOCOL_ERROR


class PromptGenerationError(LiveSessionError):
    code = PROMPT_PROTOCOL_ERROR


def classify_exception(exc: BaseException, fallback: str = ASR_PROTOCOL_ERROR) -> tuple[str, bool]:
    """Map an SDK/network exception to ``(code, retryable)``."""
    if isinstance(exc, LiveSessionError):
        return exc.code, exc.retryable
    low = str(exc).lower()
    if "401" in low or "auth" in low or "api key" in low:
        return AUTH_FAILED, False
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return NETWORK_ERROR, True
    if "timeout" in low or "network" in low or "connection" in low:
        return NETWORK_ERROR, True
    return fallback, True
