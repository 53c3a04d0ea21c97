"""
Analysis services: gatekeeper/coach, full-story scorer, fidelity reviewer.

Each service builds its prompt, calls the completion client, extracts the
JSON object and validates it. They differ only in what happens when any of
that fails:

- ``TruthDetector``    fails open (permissive verdict).
- ``StoryScorer``      fails hard (``ScoringError``), never fabricates scores.
- ``FidelityReviewer`` raises ``AnalysisError`` on transport failure and
                       falls back to neutral midpoint values on bad JSON.
"""
from __future__ import annotations

from typing import Mapping, Optional

from pydantic import ValidationError

from sanctuary.config import get_settings
from sanctuary.errors import AnalysisError, CompletionError, ScoringError
from sanctuary.prompts import (
    PromptTask,
    build_coaching_prompt,
    build_fidelity_prompt,
    build_gatekeeping_prompt,
    build_scoring_prompt,
)
from sanctuary.schemas.analysis import (
    FidelityReview,
    ScoringResult,
    TruthVerdict,
    apply_violation_caps,
)
from sanctuary.services.completion import CompletionClient
from sanctuary.utils.json_extractor import extract_json_object
from sanctuary.utils.logging_config import get_logger

_logger = get_logger("sanctuary.analysis")


class TruthDetector:
    """One detector, two configurations: blocking gate at step 1, coach elsewhere."""

    GATE_STEP = 1

    def __init__(self, completion: CompletionClient):
        self._completion = completion

    @classmethod
    def is_blocking(cls, step: Optional[int]) -> bool:
        return step is None or step == cls.GATE_STEP

    async def check(self, text: str, step: Optional[int] = None) -> TruthVerdict:
        settings = get_settings()
        if self.is_blocking(step):
            task = PromptTask.GATEKEEPING
            prompt = build_gatekeeping_prompt(text)
        else:
            task = PromptTask.COACHING
            prompt = build_coaching_prompt(text, step)

        try:
            raw = await self._completion.complete(
                prompt, task=task.value, max_output_tokens=settings.gate_max_output_tokens,
            )
        except CompletionError:
            _logger.warning("truth check unavailable, failing open", extra={"task": task.value})
            return TruthVerdict.permissive()

        parsed = extract_json_object(raw, task=task.value)
        if parsed is None:
            return TruthVerdict.permissive()
        if parsed.get("error"):
            _logger.warning(
                "truth check returned an error body, failing open",
                extra={"task": task.value, "metadata": {"error": str(parsed.get("error"))[:200]}},
            )
            return TruthVerdict.permissive()

        try:
            return TruthVerdict.model_validate(parsed)
        except ValidationError as exc:
            _logger.warning(
                "truth check shape invalid, failing open: %s", exc.errors(),
                extra={"task": task.value},
            )
            return TruthVerdict.permissive()


class StoryScorer:
    def __init__(self, completion: CompletionClient):
        self._completion = completion

    async def score(self, content: Mapping[int, str]) -> ScoringResult:
        settings = get_settings()
        task = PromptTask.SCORING.value
        try:
            raw = await self._completion.complete(
                build_scoring_prompt(content),
                task=task,
                max_output_tokens=settings.scoring_max_output_tokens,
            )
        except CompletionError as exc:
            raise ScoringError("Scoring service unavailable") from exc

        parsed = extract_json_object(raw, task=task)
        if parsed is None:
            raise ScoringError("Scoring response could not be parsed")
        if parsed.get("error"):
            raise ScoringError("Scoring response reported an error")

        try:
            result = ScoringResult.model_validate(parsed)
        except ValidationError as exc:
            _logger.warning("scoring shape invalid: %s", exc.errors(), extra={"task": task})
            raise ScoringError("Scoring response failed validation") from exc

        capped = apply_violation_caps(result, result.hook_detected, result.cta_detected)
        if capped:
            _logger.info("applied violation caps", extra={"task": task, "metadata": capped})
            result = result.model_copy(update=capped)
        return result


class FidelityReviewer:
    def __init__(self, completion: CompletionClient):
        self._completion = completion

    async def review(self, original: Mapping[int, str], published: str) -> FidelityReview:
        settings = get_settings()
        task = PromptTask.FIDELITY.value
        try:
            raw = await self._completion.complete(
                build_fidelity_prompt(original, published),
                task=task,
                max_output_tokens=settings.review_max_output_tokens,
            )
        except CompletionError as exc:
            raise AnalysisError("Analysis failed") from exc

        parsed = extract_json_object(raw, task=task)
        if parsed is None or parsed.get("error"):
            return FidelityReview.midpoint()

        try:
            review = FidelityReview.model_validate(parsed)
        except ValidationError as exc:
            _logger.warning("fidelity shape invalid, using midpoint: %s", exc.errors(), extra={"task": task})
            return FidelityReview.midpoint()

        capped = apply_violation_caps(review, review.hook_detected, review.cta_detected)
        if capped:
            review = review.model_copy(update=capped)
        return review
