"""Completion API adapter: one prompt pair in, raw model text out."""

from __future__ import annotations

import time
from typing import Optional, Protocol

from google.genai import types

from sanctuary.config import get_settings
from sanctuary.errors import CompletionError
from sanctuary.prompts import PromptPair
from sanctuary.utils.logging_config import get_logger

_logger = get_logger("sanctuary.completion")


class CompletionClient(Protocol):
    async def complete(self, prompt: PromptPair, *, task: str, max_output_tokens: int) -> str:
        ...


class GeminiCompletionClient:
    """Sends prompts to Gemini through :class:`ResilientClient`.

    Any transport failure, blocked response or empty answer is raised as
    :class:`CompletionError`; callers decide whether that is fatal.
    """

    def __init__(self, client=None, model: Optional[str] = None):
        settings = get_settings()
        self._client = client
        self._model = model or settings.model_analyst
        self._temperature = settings.analysis_temperature

    @property
    def client(self):
        if self._client is None:
            from sanctuary.utils.resilient_client import ResilientClient
            self._client = ResilientClient()
        return self._client

    async def complete(self, prompt: PromptPair, *, task: str, max_output_tokens: int) -> str:
        started = time.monotonic()
        try:
            response = await self.client.aio.models.generate_content(
                model=self._model,
                contents=prompt.user,
                config=types.GenerateContentConfig(
                    system_instruction=prompt.system,
                    temperature=self._temperature,
                    max_output_tokens=max_output_tokens,
                    response_mime_type="application/json",
                ),
            )
        except Exception as exc:
            _logger.error(
                "completion request failed: %s", exc,
                extra={"task": task, "event_type": "completion_error"},
            )
            raise CompletionError(f"Completion API error during {task}") from exc

        text = getattr(response, "text", None)
        duration_ms = int((time.monotonic() - started) * 1000)
        if not text:
            _logger.error(
                "completion returned no text",
                extra={"task": task, "event_type": "completion_empty", "duration_ms": duration_ms},
            )
            raise CompletionError(f"No response from completion API during {task}")

        _logger.info(
            "completion ok",
            extra={"task": task, "event_type": "completion_ok", "duration_ms": duration_ms},
        )
        return text
