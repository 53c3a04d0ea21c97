import os
import time
import logging
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from sanctuary.config import get_settings

load_dotenv()

# Silence "Both GOOGLE_API_KEY and GEMINI_API_KEY are set" warning
if "GEMINI_API_KEY" in os.environ and "GOOGLE_API_KEY" in os.environ:
    del os.environ["GEMINI_API_KEY"]

logger = logging.getLogger("sanctuary.key_rotator")


class KeyRotator:
    """Round-robin over the configured Gemini API keys with per-key cooldowns."""

    def __init__(self, keys: Optional[List[str]] = None):
        if keys is None:
            keys = _keys_from_env()
        if not keys:
            raise ValueError("No GOOGLE_API_KEYS or GOOGLE_API_KEY found in environment.")
        self.keys = keys

        self._cooldowns = {k: 0.0 for k in self.keys}
        self._current_index = 0

    def get_next_key(self) -> str:
        # Try to find a key not in cooldown
        for _ in range(len(self.keys)):
            key = self.keys[self._current_index]
            self._current_index = (self._current_index + 1) % len(self.keys)

            if time.time() > self._cooldowns[key]:
                logger.debug("Selected key: %s...", key[:8])
                return key

        # All keys cooling down; the caller's backoff covers the wait.
        best_key = min(self._cooldowns, key=self._cooldowns.get)
        logger.warning("All API keys exhausted. Reusing earliest key %s...", best_key[:8])
        return best_key

    def mark_exhausted(self, key: str, duration: Optional[int] = None):
        if duration is None:
            duration = get_settings().key_cooldown_seconds
        logger.info("Marking key %s... as exhausted for %ds.", key[:8], duration)
        if key in self._cooldowns:
            self._cooldowns[key] = time.time() + duration


def _keys_from_env() -> List[str]:
    keys_str = os.getenv("GOOGLE_API_KEYS", "")
    if keys_str:
        return [k.strip() for k in keys_str.split(",") if k.strip()]
    single_key = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
    return [single_key] if single_key else []


@lru_cache
def get_rotator() -> KeyRotator:
    return KeyRotator()


def get_api_key() -> str:
    return get_rotator().get_next_key()


def mark_key_exhausted(key: str):
    get_rotator().mark_exhausted(key)
