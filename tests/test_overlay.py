from __future__ import annotations

from models import PromptBatch, ReflectionPrompt
from overlay import format_duration, render_prompts, transcript_tail


def test_format_duration() -> None:
    assert format_duration(0) == "0:00"
    assert format_duration(5.9) == "0:05"
    assert format_duration(65) == "1:05"
    assert format_duration(3725) == "1:02:05"
    assert format_duration(-3) == "0:00"


def test_transcript_tail_keeps_short_text() -> None:
    assert transcript_tail("  short text ") == "short text"


def test_transcript_tail_cuts_at_word_boundary() -> None:
    text = " ".join(f"word{i}" for i in range(100))
    tail = transcript_tail(text, limit=40)

    assert tail.startswith("… ")
    assert text.endswith(tail[2:])
    assert tail[2:].split()[0] in text.split()


def test_render_prompts() -> None:
    batch = PromptBatch(
        prompts=[
            ReflectionPrompt(prompt_text="What stood out?", short_context="focus"),
            ReflectionPrompt(prompt_text="Why now?"),
        ]
    )
    assert render_prompts(batch) == "• What stood out?  (focus)\n• Why now?"
    assert render_prompts(PromptBatch()) == ""
