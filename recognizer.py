"""Live transcription adapter using DashScope qwen3-asr-flash.

The qwen3-asr-flash model accepts complete audio (file path, URL, or base64)
and streams back a cumulative transcript via ``stream=True``.  Each call is
given the whole recording so far, so the last streamed text is the
transcript of everything captured up to the snapshot.
"""

from __future__ import annotations

import base64
import logging
import os

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, TranscriptionError, classify_exception

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)


def wav_to_base64(wav: bytes) -> str:
    return base64.b64encode(wav).decode("ascii")


class DashscopeTranscriber:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 5.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s

    def transcribe(self, audio: bytes) -> str:
        """Send a WAV snapshot and return the transcript text."""
        if not audio:
            return ""
        if dashscope is None:
            raise TranscriptionError("dashscope is not installed", code=ASR_PROTOCOL_ERROR)

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise TranscriptionError("No API key configured", code=AUTH_FAILED)

        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": wav_to_base64(audio)}]},
                ],
                result_format="message",
                asr_options={"enable_itn": False},
                stream=True,
                timeout=self._request_timeout_s,
            )
            latest_text = ""
            for chunk in response:
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
        except Exception as exc:
            raise self._to_error(exc) from exc

        logger.debug("Transcribed %d bytes into %d chars", len(audio), len(latest_text))
        return latest_text.strip()

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if isinstance(chunk, dict):
            status = chunk.get("status_code")
            if status is not None and status != 200:
                raise TranscriptionError(
                    f"{status}: {chunk.get('message', '')}",
                    code=AUTH_FAILED if status == 401 else ASR_PROTOCOL_ERROR,
                    retryable=status != 401,
                )
            output = chunk.get("output") or {}
            choices = output.get("choices", [])
            if not choices:
                return ""
            message = choices[0].get("message", {})
            content = message.get("content", [])
            if not content:
                return ""
            value = content[0]
            if isinstance(value, dict):
                return str(value.get("text", ""))
        return ""

    def _to_error(self, exc: Exception) -> TranscriptionError:
        """Map an SDK/network exception to a transcription error."""
        if isinstance(exc, TranscriptionError):
            return exc
        code, retryable = classify_exception(exc, fallback=ASR_PROTOCOL_ERROR)
        return TranscriptionError(str(exc), code=code, retryable=retryable)
