"""Speech-to-text adapter (Gemini audio understanding, English only)."""

from __future__ import annotations

import dataclasses
from typing import Optional

from google.genai import types

from sanctuary.config import get_settings
from sanctuary.errors import TranscriptionError
from sanctuary.utils.logging_config import get_logger

_logger = get_logger("sanctuary.transcription")

DEFAULT_MIME_TYPE = "audio/webm"

TRANSCRIBE_INSTRUCTION = (
    "Transcribe this recording verbatim in English. "
    "Return only the spoken words as plain text, with no commentary, labels or timestamps. "
    "If nobody speaks, return an empty response."
)


@dataclasses.dataclass(frozen=True)
class TranscriptionResult:
    text: str

    @property
    def speech_detected(self) -> bool:
        return bool(self.text)


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """Map browser recorder mime types onto the containers we accept.

    ``audio/webm;codecs=opus`` -> ``audio/webm``; unknown types fall back to webm.
    """
    mime_type = (mime_type or "").lower()
    for container in ("mp4", "ogg", "wav", "webm"):
        if container in mime_type:
            return f"audio/{container}"
    return DEFAULT_MIME_TYPE


class Transcriber:
    """Single-attempt transcription; no retries on failure."""

    def __init__(self, client=None, model: Optional[str] = None):
        self._client = client
        self._model = model or get_settings().model_transcriber

    @property
    def client(self):
        if self._client is None:
            from sanctuary.utils.resilient_client import ResilientClient
            self._client = ResilientClient(max_retries=1)
        return self._client

    async def transcribe(self, audio: bytes, mime_type: Optional[str] = None) -> TranscriptionResult:
        if not audio:
            return TranscriptionResult(text="")

        mime = normalize_mime_type(mime_type)
        try:
            response = await self.client.aio.models.generate_content(
                model=self._model,
                contents=[
                    TRANSCRIBE_INSTRUCTION,
                    types.Part.from_bytes(data=audio, mime_type=mime),
                ],
                config=types.GenerateContentConfig(temperature=0.0),
            )
        except Exception as exc:
            _logger.error(
                "transcription request failed: %s", exc,
                extra={"task": "transcription", "metadata": {"mime_type": mime, "bytes": len(audio)}},
            )
            raise TranscriptionError("Transcription failed") from exc

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            _logger.info("no speech detected", extra={"task": "transcription"})
        return TranscriptionResult(text=text)
