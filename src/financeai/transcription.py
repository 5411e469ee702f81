"""Summary: Speech-to-text providers for voice messages.

Importance: Lets users dictate expenses as Discord audio attachments.
Alternatives: Ask users to type every message.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import time
import urllib.error
import urllib.request
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

from financeai.config import AppConfig


logger = logging.getLogger(__name__)

GROQ_TRANSCRIPTION_URL = "https://api.groq.com/openai/v1/audio/transcriptions"
AUDIO_EXTENSIONS = (".mp3", ".wav", ".ogg", ".m4a", ".aac", ".opus", ".webm")


def is_audio_file(filename: str) -> bool:
    return filename.lower().endswith(AUDIO_EXTENSIONS)


class Transcriber(ABC):
    """Summary: Abstract interface for audio transcription.

    Importance: Keeps the message pipeline independent of the speech-to-text vendor.
    Alternatives: Call the Groq API directly from the bot.
    """

    @abstractmethod
    def transcribe(self, audio: bytes, filename: str) -> str:
        """Return the transcribed text, or an empty string when nothing was understood."""


class MockTranscriber(Transcriber):
    """Summary: Deterministic transcriber for offline runs.

    Importance: Exercises the audio branch without an API key.
    Alternatives: Ship sample audio fixtures with known transcripts.
    """

    def __init__(self, text: str = "") -> None:
        self._text = text

    def transcribe(self, audio: bytes, filename: str) -> str:
        return self._text


class GroqTranscriber(Transcriber):
    """Summary: Transcriber backed by Groq's OpenAI-compatible Whisper endpoint.

    Importance: Fast hosted Whisper with Portuguese language hints.
    Alternatives: Run Whisper locally.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        language: str,
        url: str = GROQ_TRANSCRIPTION_URL,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._language = language
        self._url = url

    def transcribe(self, audio: bytes, filename: str) -> str:
        boundary = uuid.uuid4().hex
        body = _multipart_body(
            boundary,
            fields={"model": self._model, "language": self._language, "response_format": "json"},
            file_field="file",
            filename=filename,
            content=audio,
        )
        request = urllib.request.Request(
            url=self._url,
            data=body,
            headers={
                "Content-Type": f"multipart/form-data; boundary={boundary}",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )
        started = time.time()
        try:
            with urllib.request.urlopen(request, timeout=120) as response:
                raw = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"Groq transcription failed ({exc.code}): {detail}") from exc
        except urllib.error.URLError as exc:
            raise RuntimeError(f"Groq transcription failed: {exc}") from exc
        text = (raw.get("text") or "").strip()
        logger.info(
            "Transcribed %s (%s bytes) in %sms.",
            filename,
            len(audio),
            int((time.time() - started) * 1000),
        )
        return text


@dataclass(frozen=True)
class TranscriberFactory:
    config: AppConfig

    def build(self) -> Transcriber:
        if self.config.transcription_provider == "groq":
            if not self.config.groq_api_key:
                raise ValueError("GROQ_API_KEY is required for groq transcription")
            return GroqTranscriber(
                self.config.groq_api_key,
                self.config.groq_transcription_model,
                self.config.transcription_language,
            )
        return MockTranscriber()


def _multipart_body(
    boundary: str,
    fields: dict[str, str],
    file_field: str,
    filename: str,
    content: bytes,
) -> bytes:
    content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    parts: list[bytes] = []
    for name, value in fields.items():
        parts.append(
            f'--{boundary}\r\nContent-Disposition: form-data; name="{name}"\r\n\r\n{value}\r\n'.encode(
                "utf-8"
            )
        )
    parts.append(
        (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{file_field}"; filename="{filename}"\r\n'
            f"Content-Type: {content_type}\r\n\r\n"
        ).encode("utf-8")
        + content
        + b"\r\n"
    )
    parts.append(f"--{boundary}--\r\n".encode("utf-8"))
    return b"".join(parts)
