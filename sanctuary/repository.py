"""Row <-> domain translation for stories and published reviews."""

from __future__ import annotations

import dataclasses
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sanctuary.errors import StoryLocked, StoryNotFound
from sanctuary.models import Story, StoryReview, utcnow
from sanctuary.schemas.analysis import FidelityReview, ScoreSet
from sanctuary.schemas.story import Bucket, StoryStatus, normalize_content, serialize_content
from sanctuary.workflow.machine import StorySession


@dataclasses.dataclass(frozen=True)
class ReviewRecord:
    id: str
    story_id: str
    owner: str
    published_text: str
    review: FidelityReview
    created_at: datetime


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_domain(row: Story) -> StorySession:
    scores = ScoreSet.model_validate(row.scores_json) if row.scores_json else None
    return StorySession(
        id=row.id,
        owner=row.user_id,
        owner_email=row.owner_email,
        title=row.title,
        bucket=Bucket.parse(row.bucket),
        status=StoryStatus(row.status),
        current_step=row.current_step,
        step_content=normalize_content(row.content_json or {}),
        inspiration_text=row.inspiration_text,
        inspiration_image_ref=row.inspiration_image_url,
        scores=scores,
        summary=row.summary,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _draft_values(session: StorySession) -> dict:
    return {
        "title": session.title,
        "current_step": session.current_step,
        "content_json": serialize_content(session.step_content),
        "inspiration_text": session.inspiration_text,
        "inspiration_image_url": session.inspiration_image_ref,
        "updated_at": session.updated_at or utcnow(),
    }


class StoryRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, story_id: str, owner: Optional[str] = None) -> StorySession:
        # populate_existing: always re-read persisted state, not the identity map
        query = select(Story).where(Story.id == story_id).execution_options(populate_existing=True)
        if owner is not None:
            query = query.where(Story.user_id == owner)
        row = (await self.db.execute(query)).scalar_one_or_none()
        if row is None:
            raise StoryNotFound(story_id)
        return to_domain(row)

    async def read_status(self, story_id: str) -> StoryStatus:
        result = await self.db.execute(select(Story.status).where(Story.id == story_id))
        status = result.scalar_one_or_none()
        if status is None:
            raise StoryNotFound(story_id)
        return StoryStatus(status)

    async def list_for_owner(self, owner: str) -> List[StorySession]:
        result = await self.db.execute(
            select(Story).where(Story.user_id == owner).order_by(desc(Story.updated_at))
        )
        return [to_domain(row) for row in result.scalars().all()]

    async def list_drafts(self) -> List[StorySession]:
        result = await self.db.execute(
            select(Story).where(Story.status == StoryStatus.DRAFT.value).order_by(Story.user_id, Story.created_at)
        )
        return [to_domain(row) for row in result.scalars().all()]

    async def insert(self, session: StorySession) -> StorySession:
        session = dataclasses.replace(session, id=session.id or str(uuid.uuid4()))
        now = utcnow()
        row = Story(
            id=session.id,
            user_id=session.owner,
            owner_email=session.owner_email,
            bucket=session.bucket.value,
            status=session.status.value,
            created_at=session.created_at or now,
            **_draft_values(session),
        )
        self.db.add(row)
        await self.db.commit()
        return session

    async def update_draft(self, session: StorySession) -> None:
        """Last-write-wins save of draft fields; refused once the story is locked."""
        result = await self.db.execute(
            update(Story)
            .where(Story.id == session.id, Story.status == StoryStatus.DRAFT.value)
            .values(**_draft_values(session))
        )
        await self.db.commit()
        if result.rowcount == 0:
            await self.read_status(session.id)  # raises StoryNotFound for unknown ids
            raise StoryLocked(session.id)

    async def lock(self, session: StorySession) -> bool:
        """Write final content, step, status and scores in one conditional UPDATE.

        Returns False when another request locked the story first.
        """
        values = _draft_values(session)
        values.update(
            status=StoryStatus.LOCKED.value,
            scores_json=session.scores.scores_json(),
            summary=session.summary,
        )
        result = await self.db.execute(
            update(Story)
            .where(Story.id == session.id, Story.status == StoryStatus.DRAFT.value)
            .values(**values)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def add_review(self, story_id: str, owner: str, published_text: str,
                         review: FidelityReview) -> ReviewRecord:
        row = StoryReview(
            id=str(uuid.uuid4()),
            story_id=story_id,
            user_id=owner,
            published_text=published_text,
            review_json=review.model_dump(by_alias=True),
            created_at=utcnow(),
        )
        self.db.add(row)
        await self.db.commit()
        return _review_to_domain(row)

    async def list_reviews(self, story_id: str) -> List[ReviewRecord]:
        result = await self.db.execute(
            select(StoryReview)
            .where(StoryReview.story_id == story_id)
            .order_by(desc(StoryReview.created_at))
        )
        return [_review_to_domain(row) for row in result.scalars().all()]


def _review_to_domain(row: StoryReview) -> ReviewRecord:
    return ReviewRecord(
        id=row.id,
        story_id=row.story_id,
        owner=row.user_id,
        published_text=row.published_text,
        review=FidelityReview.model_validate(row.review_json),
        created_at=_aware(row.created_at),
    )
