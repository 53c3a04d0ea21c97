"""
Story workflow: the I/O shell around the pure state machine.

Every operation loads the session, gathers whatever the reducer needs from
the analysis services, applies ``transition`` and persists the result.
Effects returned by the reducer are performed here: recap requests go to the
outbox without being awaited, coach warnings are returned to the caller.
"""
from __future__ import annotations

import asyncio
import dataclasses
import weakref
from typing import List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sanctuary.config import get_settings
from sanctuary.errors import EmptyDraft, InvalidTransition
from sanctuary.repository import ReviewRecord, StoryRepository
from sanctuary.schemas.story import Bucket
from sanctuary.services.analysis import FidelityReviewer, StoryScorer, TruthDetector
from sanctuary.utils.logging_config import StoryAdapter, get_logger
from sanctuary.workflow.autosave import DraftAutosaver
from sanctuary.workflow.machine import (
    GATE_STEP,
    PREAMBLE_STEP,
    Advance,
    Back,
    Begin,
    Lock,
    Outcome,
    RecapRequested,
    SaveDraft,
    StorySession,
    Transition,
    check_lockable,
    meets_minimum,
    new_session,
    transition,
)

_logger = get_logger("sanctuary.workflow")


class StoryWorkflow:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        detector: TruthDetector,
        scorer: StoryScorer,
        reviewer: FidelityReviewer,
        outbox,
        autosave_delay: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._detector = detector
        self._scorer = scorer
        self._reviewer = reviewer
        self._outbox = outbox
        self._autosaver = DraftAutosaver(self._write_draft, delay=autosave_delay)
        self._lock_guards: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @property
    def autosaver(self) -> DraftAutosaver:
        return self._autosaver

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, story_id: str, owner: str) -> StorySession:
        await self._autosaver.flush(story_id)
        async with self._session_factory() as db:
            return await StoryRepository(db).get(story_id, owner)

    async def list(self, owner: str) -> List[StorySession]:
        async with self._session_factory() as db:
            sessions = await StoryRepository(db).list_for_owner(owner)
        dirty = [s.id for s in sessions if self._autosaver.is_dirty(s.id)]
        if not dirty:
            return sessions
        for story_id in dirty:
            await self._autosaver.flush(story_id)
        async with self._session_factory() as db:
            return await StoryRepository(db).list_for_owner(owner)

    # ------------------------------------------------------------------
    # Drafting
    # ------------------------------------------------------------------

    async def create(
        self,
        owner: str,
        bucket: Bucket,
        draft: SaveDraft,
        owner_email: Optional[str] = None,
    ) -> StorySession:
        """Persist a new story; refused while there is nothing written."""
        session = new_session(owner, bucket, owner_email=owner_email)
        session = transition(session, draft).session
        if not session.has_content():
            raise EmptyDraft("Write something before saving")
        async with self._session_factory() as db:
            session = await StoryRepository(db).insert(session)
        StoryAdapter(_logger, session.id).info("story created", extra={"event_type": "create"})
        return session

    async def save_draft(self, story_id: str, owner: str, draft: SaveDraft) -> StorySession:
        """Validate an edit now, write it after the debounce window."""
        async with self._session_factory() as db:
            session = await StoryRepository(db).get(story_id, owner)
        pending = self._autosaver.pending(story_id)
        if pending is not None:
            session = transition(session, pending).session
        updated = transition(session, draft).session
        self._autosaver.schedule(story_id, draft)
        return updated

    async def _write_draft(self, story_id: str, draft: SaveDraft) -> None:
        async with self._session_factory() as db:
            repo = StoryRepository(db)
            session = await repo.get(story_id)
            result = transition(session, draft)
            await repo.update_draft(result.session)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def begin(self, story_id: str, owner: str) -> Transition:
        return await self._navigate(story_id, owner, Begin())

    async def back(self, story_id: str, owner: str) -> Transition:
        return await self._navigate(story_id, owner, Back())

    async def _navigate(self, story_id: str, owner: str, event) -> Transition:
        await self._autosaver.flush(story_id)
        async with self._session_factory() as db:
            repo = StoryRepository(db)
            result = transition(await repo.get(story_id, owner), event)
            if result.changed:
                await repo.update_draft(result.session)
        return result

    async def advance(
        self,
        owner: str,
        story_id: Optional[str] = None,
        content: Optional[Mapping[int, str]] = None,
        override: bool = False,
        bucket: Optional[Bucket] = None,
        owner_email: Optional[str] = None,
    ) -> Transition:
        """Move forward one step, running the gate (step 1) or the coach.

        Without ``story_id`` a new session is started for ``bucket`` and is
        persisted once it holds any content. Step-1 text sent with a new
        session that opens on the inspiration step begins the story first.
        """
        if story_id is not None:
            await self._autosaver.flush(story_id)

        async with self._session_factory() as db:
            repo = StoryRepository(db)
            if story_id is None:
                if bucket is None:
                    raise InvalidTransition("A bucket is required to start a story")
                session = new_session(owner, bucket, owner_email=owner_email)
                if session.current_step == PREAMBLE_STEP and content and GATE_STEP in content:
                    session = transition(session, Begin()).session
            else:
                session = await repo.get(story_id, owner)

            edited = content is not None
            if edited:
                session = transition(session, SaveDraft(content=content)).session

            result = await self._decide_advance(session, override)

            if session.id is None:
                if result.session.has_content():
                    result = dataclasses.replace(result, session=await repo.insert(result.session))
            elif result.changed or edited:
                await repo.update_draft(result.session)

        log = StoryAdapter(_logger, result.session.id)
        log.info(
            "advance %s", result.outcome.value,
            extra={"event_type": "advance", "metadata": {"step": result.session.current_step}},
        )
        return result

    async def _decide_advance(self, session: StorySession, override: bool) -> Transition:
        if session.is_locked or session.current_step == 0:
            # Let the reducer raise the right refusal without an external call
            return transition(session, Advance())
        step = session.current_step
        text = session.content_for(step)
        if not meets_minimum(text):
            return transition(session, Advance())
        if step >= get_settings().total_steps:
            return transition(session, Advance())
        verdict = await self._detector.check(text, step=step)
        return transition(session, Advance(verdict=verdict, override=override))

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def _guard(self, story_id: str) -> asyncio.Lock:
        guard = self._lock_guards.get(story_id)
        if guard is None:
            guard = asyncio.Lock()
            self._lock_guards[story_id] = guard
        return guard

    async def lock(self, story_id: str, owner: str, content: Optional[Mapping[int, str]] = None) -> Transition:
        """Score and lock the story exactly once.

        Raises ``ScoringError`` when scoring fails; the story then stays a
        draft at the final step and the call can simply be retried.
        """
        log = StoryAdapter(_logger, story_id)
        async with self._guard(story_id):
            await self._autosaver.flush(story_id)
            async with self._session_factory() as db:
                repo = StoryRepository(db)
                # get() re-reads the persisted row, so a finished lock is always seen
                session = await repo.get(story_id, owner)
                if session.is_locked:
                    log.info("lock skipped: already locked", extra={"event_type": "lock"})
                    return Transition(session, Outcome.ALREADY_LOCKED)

                if content is not None:
                    session = transition(session, SaveDraft(content=content)).session
                    await repo.update_draft(session)

                refused = check_lockable(session)
                if refused is not None:
                    return refused

                scoring = await self._scorer.score(session.step_content)
                result = transition(session, Lock(result=scoring))

                if not await repo.lock(result.session):
                    log.info("lock lost to a concurrent request", extra={"event_type": "lock"})
                    return Transition(await repo.get(story_id), Outcome.ALREADY_LOCKED)

            log.info("story locked", extra={"event_type": "lock", "metadata": result.session.scores.scores_json()})
            for effect in result.effects:
                if isinstance(effect, RecapRequested):
                    self._dispatch_recap(effect)
            return result

    def _dispatch_recap(self, effect: RecapRequested) -> None:
        try:
            self._outbox.enqueue(effect)
        except Exception:
            StoryAdapter(_logger, effect.story_id).exception("could not enqueue recap")

    # ------------------------------------------------------------------
    # Published reviews
    # ------------------------------------------------------------------

    async def review_published(self, story_id: str, owner: str, published_text: str) -> ReviewRecord:
        """Run a fidelity review and store it as a new record.

        ``AnalysisError`` propagates untouched; earlier reviews are unaffected.
        """
        async with self._session_factory() as db:
            repo = StoryRepository(db)
            session = await repo.get(story_id, owner)
            if not session.is_locked:
                raise InvalidTransition("Only locked stories can be reviewed")
            review = await self._reviewer.review(session.step_content, published_text)
            record = await repo.add_review(story_id, owner, published_text, review)
        StoryAdapter(_logger, story_id).info(
            "published review stored", extra={"event_type": "review", "metadata": {"fidelity": review.fidelity_score}},
        )
        return record

    async def list_reviews(self, story_id: str, owner: str) -> List[ReviewRecord]:
        async with self._session_factory() as db:
            repo = StoryRepository(db)
            await repo.get(story_id, owner)
            return await repo.list_reviews(story_id)
