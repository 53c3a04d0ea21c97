"""
Gemini client wrapper with key rotation and backoff.

``ResilientClient(...).aio.models.<method>(...)`` behaves like the plain
``google.genai`` call, except that:

- 429 / RESOURCE_EXHAUSTED marks the key as cooling down, switches to the
  next key and retries after a backoff;
- 503 / UNAVAILABLE retries after a backoff on the same key;
- anything else, or the last attempt, is raised to the caller.
"""
import asyncio
import logging
from typing import Optional

from google.genai import Client as GenAIClient
from google.genai import types

from sanctuary.config import get_settings
from sanctuary.utils.auth import get_api_key, mark_key_exhausted

logger = logging.getLogger("sanctuary.resilient_client")

RATE_LIMITED = "rate_limited"
OVERLOADED = "overloaded"


def classify_error(exc: BaseException) -> Optional[str]:
    """Return RATE_LIMITED, OVERLOADED or None for a failed call."""
    code = getattr(exc, "code", None)
    text = str(exc).upper()
    if code == 429 or "429" in text or "RESOURCE_EXHAUSTED" in text:
        return RATE_LIMITED
    if code == 503 or "503" in text or "UNAVAILABLE" in text:
        return OVERLOADED
    return None


class ResilientClient:
    """``max_retries`` counts attempts; ``1`` means a single try."""

    def __init__(self, api_key=None, timeout_seconds: Optional[float] = None,
                 max_retries: Optional[int] = None, **kwargs):
        settings = get_settings()
        self._pinned = api_key is not None
        self._key = api_key or get_api_key()
        self._client_kwargs = kwargs
        seconds = settings.request_timeout_seconds if timeout_seconds is None else timeout_seconds
        # google-genai takes the timeout in milliseconds
        self._http_options = types.HttpOptions(timeout=int(seconds * 1000))
        self.max_attempts = max(1, settings.resilient_max_retries if max_retries is None else max_retries)
        self.base_delay = settings.resilient_base_delay
        self._client = self._connect()
        self.aio = _Aio(self)

    def _connect(self):
        return GenAIClient(api_key=self._key, http_options=self._http_options, **self._client_kwargs)

    @property
    def current(self):
        return self._client

    def rotate(self) -> None:
        if self._pinned:
            return
        mark_key_exhausted(self._key)
        previous, self._key = self._key, get_api_key()
        logger.info("rotated api key %s... -> %s...", previous[:8], self._key[:8])
        self._client = self._connect()


class _Aio:
    def __init__(self, owner: ResilientClient):
        self.models = _RetryingModels(owner)


class _RetryingModels:
    def __init__(self, owner: ResilientClient):
        self._owner = owner

    def __getattr__(self, name):
        target = getattr(self._owner.current.aio.models, name)
        if not callable(target):
            return target

        async def call(*args, **kwargs):
            owner = self._owner
            for attempt in range(1, owner.max_attempts + 1):
                try:
                    # Re-resolve each time: rotate() swaps the underlying client
                    return await getattr(owner.current.aio.models, name)(*args, **kwargs)
                except Exception as exc:
                    kind = classify_error(exc)
                    if kind is None or attempt == owner.max_attempts:
                        raise
                    delay = owner.base_delay * 2 ** (attempt - 1)
                    logger.warning(
                        "%s on %s, attempt %d/%d, retrying in %ss",
                        kind, name, attempt, owner.max_attempts, delay,
                    )
                    if kind == RATE_LIMITED:
                        owner.rotate()
                    await asyncio.sleep(delay)

        return call
