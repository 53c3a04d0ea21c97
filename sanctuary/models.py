from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, ForeignKey, Text, JSON, Integer, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass

class Story(Base):
    __tablename__ = "stories"

    id: Mapped[str] = mapped_column(String, primary_key=True, index=True) # Using UUID strings
    user_id: Mapped[str] = mapped_column(String, index=True)
    owner_email: Mapped[Optional[str]] = mapped_column(String, nullable=True)  # Recap / reminder address
    title: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    bucket: Mapped[str] = mapped_column(String(16))  # personal | business | industry, fixed at creation
    status: Mapped[str] = mapped_column(String(16), default="draft", index=True)  # draft -> locked, one way
    current_step: Mapped[int] = mapped_column(Integer, default=1)

    # Keyed by step number as a string: {"1": "...", "2": "..."}
    content_json: Mapped[dict] = mapped_column(JSON, default=dict)
    # Five numeric fields only; present iff status == "locked"
    scores_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Preamble step, never scored
    inspiration_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    inspiration_image_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class StoryReview(Base):
    """Published-text fidelity review. Insert-only; one row per analysis."""
    __tablename__ = "story_reviews"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    story_id: Mapped[str] = mapped_column(ForeignKey("stories.id"))
    user_id: Mapped[str] = mapped_column(String)
    published_text: Mapped[str] = mapped_column(Text)
    review_json: Mapped[dict] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_story_reviews_story_created", "story_id", "created_at"),
    )
