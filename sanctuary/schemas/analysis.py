"""
Analysis result contracts.

These Pydantic models are the single source of truth for what the completion
API must return for each task. Field names are snake_case in Python and
camelCase on the wire (``model_dump(by_alias=True)``), which is also the
shape the prompts ask the model for.

Usage:
    from sanctuary.schemas import ScoringResult

    result = ScoringResult.model_validate(parsed_json)
    scores_json = result.score_set().model_dump(by_alias=True)
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model: camelCase aliases, unknown keys from the model ignored."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Gatekeeper / coach
# ---------------------------------------------------------------------------

class TruthVerdict(WireModel):
    """Outcome of the gate (step 1) or the coach (later steps)."""
    needs_refinement: bool = False
    hook_detected: bool = False
    cta_detected: bool = False
    soft_nudge: Optional[str] = None

    @field_validator("soft_nudge", mode="before")
    @classmethod
    def _blank_nudge_is_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @property
    def flagged(self) -> bool:
        return self.hook_detected or self.cta_detected

    @classmethod
    def permissive(cls) -> "TruthVerdict":
        """Fail-open default used whenever the check itself fails."""
        return cls()


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------

class ScoreSet(WireModel):
    """Five bounded scores.

    ``authenticity``, ``vulnerability`` and ``credibility``: higher is better.
    ``cringe_risk`` and ``platform_play``: higher is WORSE.
    ``platform_play`` defaults to 0 for older responses that omit it.
    """
    authenticity: int = Field(..., ge=0, le=100)
    vulnerability: int = Field(..., ge=0, le=100)
    credibility: int = Field(..., ge=0, le=100)
    cringe_risk: int = Field(..., ge=0, le=100)
    platform_play: int = Field(default=0, ge=0, le=100)

    def score_set(self) -> "ScoreSet":
        return ScoreSet(**{name: getattr(self, name) for name in ScoreSet.model_fields})

    def scores_json(self) -> dict:
        """The five numeric fields only, as stored in ``scores_json``."""
        return self.score_set().model_dump(by_alias=True)


class ScoringResult(ScoreSet):
    hook_detected: bool = False
    cta_detected: bool = False
    summary: Optional[str] = None


class FidelityReview(ScoreSet):
    fidelity_score: int = Field(..., ge=0, le=100)
    hook_examples: List[str] = Field(default_factory=list)
    cta_examples: List[str] = Field(default_factory=list)
    marketing_examples: List[str] = Field(default_factory=list)
    credibility_risk_examples: List[str] = Field(default_factory=list)
    summary: str = ""

    @field_validator(
        "hook_examples", "cta_examples", "marketing_examples", "credibility_risk_examples",
        mode="before",
    )
    @classmethod
    def _quotes_only(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(v).strip() for v in value if v is not None and str(v).strip()]

    @field_validator("summary", mode="before")
    @classmethod
    def _summary_text(cls, value):
        return "" if value is None else str(value)

    @property
    def hook_detected(self) -> bool:
        return bool(self.hook_examples)

    @property
    def cta_detected(self) -> bool:
        return bool(self.cta_examples)

    @classmethod
    def midpoint(cls) -> "FidelityReview":
        """Neutral defaults rendered when the model's answer cannot be parsed."""
        return cls(
            authenticity=50,
            vulnerability=50,
            credibility=50,
            cringe_risk=50,
            platform_play=50,
            fidelity_score=50,
            summary="Unable to analyze published story",
        )


# ---------------------------------------------------------------------------
# Violation caps
# ---------------------------------------------------------------------------

HOOK_AUTHENTICITY_CAP = 40
CTA_VULNERABILITY_CAP = 30
HOOK_AND_CTA_CRINGE_FLOOR = 85


def apply_violation_caps(scores: ScoreSet, hook_detected: bool, cta_detected: bool) -> dict:
    """Return the field updates that enforce the hard caps for detected violations.

    Only the absolute caps are enforced here; the relative penalties stay with
    the model.
    """
    updates: dict = {}
    if hook_detected and scores.authenticity > HOOK_AUTHENTICITY_CAP:
        updates["authenticity"] = HOOK_AUTHENTICITY_CAP
    if cta_detected and scores.vulnerability > CTA_VULNERABILITY_CAP:
        updates["vulnerability"] = CTA_VULNERABILITY_CAP
    if hook_detected and cta_detected and scores.cringe_risk < HOOK_AND_CTA_CRINGE_FLOOR:
        updates["cringe_risk"] = HOOK_AND_CTA_CRINGE_FLOOR
    return updates
