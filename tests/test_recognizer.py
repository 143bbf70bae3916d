"""Tests for DashscopeTranscriber."""

from __future__ import annotations

import base64
from unittest.mock import MagicMock, patch

import pytest

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, NETWORK_ERROR, TranscriptionError
from recognizer import DashscopeTranscriber
from recorder import pcm_to_wav

WAV = pcm_to_wav(b"\x00\x00" * 1600)


def _chunk(text: str) -> dict:
    return {"output": {"choices": [{"message": {"content": [{"text": text}]}}]}}


def _fake_streaming_response():
    """Simulate dashscope streaming chunks."""
    yield _chunk("I")
    yield _chunk("I went")
    yield _chunk("I went for a walk.")


# ---------------------------------------------------------------
# Successful calls
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_returns_last_streamed_text(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = _fake_streaming_response()

    transcriber = DashscopeTranscriber(api_key="test-key", request_timeout_s=5.0)
    assert transcriber.transcribe(WAV) == "I went for a walk."

    kwargs = mock_ds.MultiModalConversation.call.call_args.kwargs
    assert kwargs["api_key"] == "test-key"
    assert kwargs["model"] == "qwen3-asr-flash"
    assert kwargs["timeout"] == 5.0
    sent = kwargs["messages"][1]["content"][0]["audio"]
    assert base64.b64decode(sent)[:4] == b"RIFF"


@patch("recognizer.dashscope")
def test_empty_audio_skips_the_call(mock_ds: MagicMock) -> None:
    assert DashscopeTranscriber(api_key="k").transcribe(b"") == ""
    mock_ds.MultiModalConversation.call.assert_not_called()


@patch("recognizer.dashscope")
def test_chunks_without_text_are_ignored(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter(
        [_chunk("hello"), {"output": {"choices": []}}, "garbage"]
    )

    assert DashscopeTranscriber(api_key="k").transcribe(WAV) == "hello"


# ---------------------------------------------------------------
# Failures
# ---------------------------------------------------------------

@patch("recognizer.dashscope", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_missing_api_key_raises_auth_error() -> None:
    with pytest.raises(TranscriptionError) as info:
        DashscopeTranscriber(api_key="").transcribe(WAV)
    assert info.value.code == AUTH_FAILED


@patch("recognizer.dashscope")
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": "env-key"}, clear=False)
def test_api_key_falls_back_to_environment(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("hi")])

    DashscopeTranscriber(api_key="").transcribe(WAV)

    assert mock_ds.MultiModalConversation.call.call_args.kwargs["api_key"] == "env-key"


@patch("recognizer.dashscope")
def test_network_error_maps_correctly(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = ConnectionError("network timeout")

    with pytest.raises(TranscriptionError) as info:
        DashscopeTranscriber(api_key="k").transcribe(WAV)
    assert info.value.code == NETWORK_ERROR
    assert info.value.retryable is True


@patch("recognizer.dashscope")
def test_auth_error_maps_correctly(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = Exception("401 Unauthorized: invalid api key")

    with pytest.raises(TranscriptionError) as info:
        DashscopeTranscriber(api_key="bad-key").transcribe(WAV)
    assert info.value.code == AUTH_FAILED
    assert info.value.retryable is False


@patch("recognizer.dashscope")
def test_error_status_chunk_raises(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter(
        [{"status_code": 400, "message": "InvalidParameter"}]
    )

    with pytest.raises(TranscriptionError) as info:
        DashscopeTranscriber(api_key="k").transcribe(WAV)
    assert info.value.code == ASR_PROTOCOL_ERROR
    assert "InvalidParameter" in info.value.message


@patch("recognizer.dashscope", None)
def test_dashscope_not_installed_raises() -> None:
    with pytest.raises(TranscriptionError, match="not installed"):
        DashscopeTranscriber(api_key="k").transcribe(WAV)
