"""Tests for key rotation and the retrying Gemini client wrapper."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sanctuary.utils.auth import KeyRotator
from sanctuary.utils.resilient_client import ResilientClient


class TestKeyRotator:
    def test_round_robin(self):
        rotator = KeyRotator(["k1", "k2"])
        assert [rotator.get_next_key() for _ in range(3)] == ["k1", "k2", "k1"]

    def test_skips_cooling_keys(self):
        rotator = KeyRotator(["k1", "k2"])
        rotator.mark_exhausted("k1", duration=60)
        assert rotator.get_next_key() == "k2"
        assert rotator.get_next_key() == "k2"

    def test_all_cooling_returns_earliest(self):
        rotator = KeyRotator(["k1", "k2"])
        rotator.mark_exhausted("k1", duration=120)
        rotator.mark_exhausted("k2", duration=60)
        assert rotator.get_next_key() == "k2"

    def test_no_keys(self):
        with pytest.raises(ValueError):
            KeyRotator([])


@pytest.fixture
def genai():
    with patch("sanctuary.utils.resilient_client.GenAIClient") as client_cls, \
            patch("sanctuary.utils.resilient_client.asyncio.sleep", new=AsyncMock()) as sleep:
        instance = MagicMock()
        client_cls.return_value = instance
        yield client_cls, instance.aio.models, sleep


class TestResilientClient:
    def test_retries_overload_then_succeeds(self, genai):
        _, models, sleep = genai
        models.generate_content = AsyncMock(side_effect=[RuntimeError("503 UNAVAILABLE"), "ok"])
        client = ResilientClient(api_key="pinned", max_retries=3)
        assert asyncio.run(client.aio.models.generate_content(model="m", contents="c")) == "ok"
        assert models.generate_content.await_count == 2
        sleep.assert_awaited_once()

    def test_other_errors_are_raised_immediately(self, genai):
        _, models, sleep = genai
        models.generate_content = AsyncMock(side_effect=RuntimeError("400 INVALID_ARGUMENT"))
        client = ResilientClient(api_key="pinned", max_retries=3)
        with pytest.raises(RuntimeError, match="400"):
            asyncio.run(client.aio.models.generate_content(model="m", contents="c"))
        assert models.generate_content.await_count == 1
        sleep.assert_not_awaited()

    def test_single_attempt(self, genai):
        _, models, _ = genai
        models.generate_content = AsyncMock(side_effect=RuntimeError("503 UNAVAILABLE"))
        client = ResilientClient(api_key="pinned", max_retries=1)
        with pytest.raises(RuntimeError):
            asyncio.run(client.aio.models.generate_content(model="m", contents="c"))
        assert models.generate_content.await_count == 1

    def test_rate_limit_rotates_unpinned_key(self, genai):
        client_cls, models, _ = genai
        models.generate_content = AsyncMock(side_effect=[RuntimeError("429 RESOURCE_EXHAUSTED"), "ok"])
        with patch("sanctuary.utils.resilient_client.get_api_key", side_effect=["k1", "k2"]), \
                patch("sanctuary.utils.resilient_client.mark_key_exhausted") as exhausted:
            client = ResilientClient(max_retries=2)
            assert asyncio.run(client.aio.models.generate_content(model="m", contents="c")) == "ok"
        exhausted.assert_called_once_with("k1")
        assert client_cls.call_args.kwargs["api_key"] == "k2"

    def test_timeout_is_passed_in_milliseconds(self, genai):
        client_cls, _, _ = genai
        ResilientClient(api_key="pinned", timeout_seconds=12.5)
        assert client_cls.call_args.kwargs["http_options"].timeout == 12500
