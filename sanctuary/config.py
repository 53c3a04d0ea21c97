from __future__ import annotations

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    app_name: str = "The Sanctuary"
    # Default to a local postgres database if not set in env
    database_url: str = "postgresql+asyncpg://localhost/sanctuary"

    # Model configuration - can be overridden via environment variables
    model_analyst: str = "gemini-2.5-flash"      # Gatekeeper, coach, scorer, fidelity reviewer
    model_transcriber: str = "gemini-2.5-flash"  # Audio transcription

    # Sampling for every analysis call
    analysis_temperature: float = 0.3
    gate_max_output_tokens: int = 300
    scoring_max_output_tokens: int = 400
    review_max_output_tokens: int = 800

    # Resilient client retry settings
    resilient_max_retries: int = 4
    resilient_base_delay: int = 2  # seconds, used with exponential backoff

    # API key cooldown after exhaustion
    key_cooldown_seconds: int = 60

    # Upper bound for any single outbound HTTP call
    request_timeout_seconds: float = 30.0

    # Wizard rules
    total_steps: int = 12
    min_step_chars: int = 10  # trimmed content must be strictly longer than this
    inspiration_buckets: List[str] = ["personal"]

    # Coalescing window for draft autosave
    autosave_debounce_seconds: float = 1.0

    # Transactional email (Resend)
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    email_from: str = "The Sanctuary <onboarding@resend.dev>"
    app_url: str = "https://app.disruptur.com"
    outbox_max_attempts: int = 3

    log_file: str = "server.log"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

@lru_cache
def get_settings():
    return Settings()
