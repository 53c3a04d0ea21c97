"""
HTTP request bodies.

Any ``ValidationError`` raised here is reported as HTTP 400 with an
``error`` string (see ``sanctuary.app``). Step keys arrive as strings and are
coerced to ints by ``Dict[int, str]``.
"""
from __future__ import annotations

from typing import Dict, Optional

from pydantic import Field, field_validator

from sanctuary.schemas.analysis import ScoreSet, WireModel
from sanctuary.schemas.story import Bucket

MAX_TEXT = 100_000


def _non_empty_content(value: Dict[int, str]) -> Dict[int, str]:
    if not value:
        raise ValueError("content must contain at least one step")
    return value


# ---------------------------------------------------------------------------
# Stateless analysis operations
# ---------------------------------------------------------------------------

class AuthenticityRequest(WireModel):
    text: str = Field(..., min_length=1, max_length=MAX_TEXT)
    step: Optional[int] = Field(default=None, ge=0, le=12)


class ScoreStoryRequest(WireModel):
    content: Dict[int, str]

    _check_content = field_validator("content")(_non_empty_content)


class ReviewPublishedRequest(WireModel):
    original_content: Dict[int, str]
    published_text: str = Field(..., min_length=1, max_length=MAX_TEXT)

    _check_content = field_validator("original_content")(_non_empty_content)


class TranscribeRequest(WireModel):
    audio: str = Field(..., min_length=1)
    mime_type: Optional[str] = None


class RecapScores(ScoreSet):
    summary: Optional[str] = None


class RecapEmailRequest(WireModel):
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    scores: RecapScores
    content: Dict[int, str]
    bucket: str = "personal"

    _check_content = field_validator("content")(_non_empty_content)


# ---------------------------------------------------------------------------
# Wizard
# ---------------------------------------------------------------------------

class _BucketField(WireModel):
    bucket: Bucket

    @field_validator("bucket", mode="before")
    @classmethod
    def _parse_bucket(cls, value):
        if isinstance(value, str):
            return Bucket.parse(value)
        return value


class DraftFields(WireModel):
    content: Optional[Dict[int, str]] = None
    title: Optional[str] = Field(default=None, max_length=200)
    inspiration_text: Optional[str] = Field(default=None, max_length=MAX_TEXT)
    inspiration_image_ref: Optional[str] = Field(default=None, max_length=2000)


class CreateStoryRequest(DraftFields, _BucketField):
    pass


class AdvanceRequest(WireModel):
    content: Optional[Dict[int, str]] = None
    override: bool = False


class StartStoryRequest(AdvanceRequest, _BucketField):
    pass


class LockRequest(WireModel):
    content: Optional[Dict[int, str]] = None


class PublishedReviewRequest(WireModel):
    published_text: str = Field(..., min_length=1, max_length=MAX_TEXT)
