"""Reflection prompt generation using a DashScope chat model."""

from __future__ import annotations

import json
import logging
import os
import time

from errors import AUTH_FAILED, PROMPT_PROTOCOL_ERROR, PromptGenerationError, classify_exception
from models import PromptBatch, ReflectionPrompt

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

MIN_TRANSCRIPT_CHARS = 10

SYSTEM_PROMPT = (
    "You're a caring friend who asks short, natural questions. "
    "Keep it simple and conversational."
)

USER_TEMPLATE = """You're a caring friend listening to someone share their thoughts. Create 2-3 short, natural questions based on what they just said.

What they're saying:
\"\"\"
{transcript}
\"\"\"

Make questions that:
- Are super short (1 sentence)
- Sound like a friend asking
- Help them think more about what they shared
- Feel natural to answer while talking

Respond in JSON:
{{
  "prompts": [
    {{
      "prompt": "Short, natural question",
      "context": "Brief reason (1-3 words)"
    }}
  ]
}}"""


def parse_prompts(content: str, now_ms: int | None = None) -> PromptBatch:
    """Turn the model's JSON answer into a ``PromptBatch``."""
    try:
        data = json.loads(content or '{"prompts": []}')
    except json.JSONDecodeError as exc:
        raise PromptGenerationError(f"invalid JSON from model: {exc}") from exc
    items = data.get("prompts", []) if isinstance(data, dict) else []
    if not isinstance(items, list):
        raise PromptGenerationError("'prompts' is not a list")

    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    prompts = []
    for item in items:
        if not isinstance(item, dict):
            continue
        text = str(item.get("prompt", "")).strip()
        if not text:
            continue
        prompts.append(
            ReflectionPrompt(
                prompt_text=text,
                short_context=str(item.get("context", "")).strip(),
                id=f"live-prompt-{stamp}-{len(prompts)}",
            )
        )
    return PromptBatch(prompts=prompts)


class DashscopePromptGenerator:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen-plus",
        temperature: float = 0.8,
        max_tokens: int = 300,
        request_timeout_s: float = 6.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._request_timeout_s = request_timeout_s

    def generate_prompts(self, transcript: str) -> PromptBatch:
        if len(transcript.strip()) < MIN_TRANSCRIPT_CHARS:
            raise PromptGenerationError(
                f"transcript must be at least {MIN_TRANSCRIPT_CHARS} characters long"
            )
        if dashscope is None:
            raise PromptGenerationError("dashscope is not installed")

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise PromptGenerationError("No API key configured", code=AUTH_FAILED)

        try:
            response = dashscope.Generation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": USER_TEMPLATE.format(transcript=transcript)},
                ],
                result_format="message",
                response_format={"type": "json_object"},
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            code, retryable = classify_exception(exc, fallback=PROMPT_PROTOCOL_ERROR)
            raise PromptGenerationError(str(exc), code=code, retryable=retryable) from exc

        batch = parse_prompts(self._extract_content(response))
        logger.debug("Generated %d prompts for %d chars", len(batch), len(transcript))
        return batch

    def _extract_content(self, response: object) -> str:
        if not isinstance(response, dict):
            raise PromptGenerationError("unexpected response type")
        status = response.get("status_code")
        if status is not None and status != 200:
            raise PromptGenerationError(
                f"{status}: {response.get('message', '')}",
                code=AUTH_FAILED if status == 401 else PROMPT_PROTOCOL_ERROR,
                retryable=status != 401,
            )
        output = response.get("output") or {}
        choices = output.get("choices", [])
        if not choices:
            raise PromptGenerationError("response has no choices")
        content = choices[0].get("message", {}).get("content", "")
        if isinstance(content, list):
            content = "".join(str(part.get("text", "")) for part in content if isinstance(part, dict))
        return str(content)
