"""Wire shapes returned by the session routes."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sanctuary.schemas.story import serialize_content, step_title
from sanctuary.workflow.machine import CoachWarning


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def story_to_wire(session) -> dict:
    current = session.current_step
    return {
        "id": session.id,
        "title": session.title or "Untitled Story",
        "bucket": session.bucket.value,
        "status": session.status.value,
        "currentStep": current,
        "stepTitle": step_title(current) if current else None,
        "content": serialize_content(session.step_content),
        "inspirationText": session.inspiration_text,
        "inspirationImageRef": session.inspiration_image_ref,
        "scores": session.scores.scores_json() if session.scores else None,
        "summary": session.summary,
        "createdAt": _iso(session.created_at),
        "updatedAt": _iso(session.updated_at),
    }


def story_summary_to_wire(session) -> dict:
    return {
        "id": session.id,
        "title": session.title or "Untitled Story",
        "bucket": session.bucket.value,
        "status": session.status.value,
        "currentStep": session.current_step,
        "updatedAt": _iso(session.updated_at),
    }


def transition_to_wire(result) -> dict:
    """Outcome, the resulting story, and any coach warnings raised on the way."""
    warnings = [
        {
            "step": effect.step,
            "softNudge": effect.soft_nudge,
            "hookDetected": effect.hook_detected,
            "ctaDetected": effect.cta_detected,
            "blocking": effect.blocking,
        }
        for effect in result.effects
        if isinstance(effect, CoachWarning)
    ]
    body = {
        "outcome": result.outcome.value,
        "story": story_to_wire(result.session),
        "warnings": warnings,
    }
    if result.verdict is not None:
        body["verdict"] = result.verdict.model_dump(by_alias=True)
    return body


def review_to_wire(record) -> dict:
    return {
        "id": record.id,
        "storyId": record.story_id,
        "publishedText": record.published_text,
        "review": record.review.model_dump(by_alias=True),
        "createdAt": _iso(record.created_at),
    }
