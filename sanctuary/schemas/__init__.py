# Story vocabulary
from .story import (
    Bucket,
    StoryStatus,
    StepConfig,
    STORY_STEPS,
    STEP_TITLES,
    step_title,
    normalize_content,
    serialize_content,
    format_narrative,
)

# Analysis contracts (gate / coach, scoring, fidelity review)
from .analysis import (
    WireModel,
    TruthVerdict,
    ScoreSet,
    ScoringResult,
    FidelityReview,
    apply_violation_caps,
)

__all__ = [
    "Bucket",
    "StoryStatus",
    "StepConfig",
    "STORY_STEPS",
    "STEP_TITLES",
    "step_title",
    "normalize_content",
    "serialize_content",
    "format_narrative",
    "WireModel",
    "TruthVerdict",
    "ScoreSet",
    "ScoringResult",
    "FidelityReview",
    "apply_violation_caps",
]
