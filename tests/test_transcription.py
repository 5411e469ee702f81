"""Summary: Tests for audio detection and transcription providers.

Importance: Voice notes must be recognized and sent to the right backend.
Alternatives: Exercise transcription only through the Discord pipeline.
"""

from __future__ import annotations

import io
import json
from dataclasses import replace

import pytest

from financeai import transcription
from financeai.config import AppConfig
from financeai.transcription import (
    GroqTranscriber,
    MockTranscriber,
    TranscriberFactory,
    is_audio_file,
)


class _FakeResponse(io.BytesIO):
    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def test_is_audio_file_matches_known_extensions() -> None:
    assert is_audio_file("voice-message.ogg")
    assert is_audio_file("Nota.M4A")
    assert not is_audio_file("recibo.png")
    assert not is_audio_file("ogg.txt")


def test_factory_selects_transcriber(config: AppConfig) -> None:
    assert isinstance(TranscriberFactory(config).build(), MockTranscriber)
    groq = replace(config, transcription_provider="groq", groq_api_key="gsk")
    assert isinstance(TranscriberFactory(groq).build(), GroqTranscriber)
    with pytest.raises(ValueError):
        TranscriberFactory(replace(config, transcription_provider="groq")).build()


def test_groq_transcriber_posts_multipart(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify the upload carries model, language, and the audio bytes.

    Importance: Groq rejects requests without a model or file part.
    Alternatives: Trust an SDK to build the form.
    """

    captured = {}

    def fake_urlopen(request, timeout=0):
        captured["body"] = request.data
        captured["content_type"] = request.get_header("Content-type")
        return _FakeResponse(json.dumps({"text": "  gastei vinte reais  "}).encode("utf-8"))

    monkeypatch.setattr(transcription.urllib.request, "urlopen", fake_urlopen)
    text = GroqTranscriber("gsk", "whisper-large-v3-turbo", "pt").transcribe(b"OggS-bytes", "voice.ogg")

    assert text == "gastei vinte reais"
    assert captured["content_type"].startswith("multipart/form-data; boundary=")
    assert b'name="model"\r\n\r\nwhisper-large-v3-turbo' in captured["body"]
    assert b'name="language"\r\n\r\npt' in captured["body"]
    assert b'filename="voice.ogg"' in captured["body"]
    assert b"OggS-bytes" in captured["body"]
