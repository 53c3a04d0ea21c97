"""
Story session state machine.

States are ``Preamble`` (step 0, only for buckets with an inspiration step),
``Step[1..12]`` and ``Locked``. ``transition`` is a pure function:

    transition(session, event, now) -> Transition(session, outcome, effects)

It never performs I/O. Gate verdicts and scoring results are computed by the
caller and handed in on the event; effects (coach warnings, recap requests)
are handed back for the caller to perform.
"""
from __future__ import annotations

import dataclasses
import enum
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Tuple, Union

from sanctuary.config import get_settings
from sanctuary.errors import InvalidTransition, StoryLocked
from sanctuary.schemas.analysis import ScoreSet, ScoringResult, TruthVerdict
from sanctuary.schemas.story import Bucket, StoryStatus

GATE_STEP = 1
PREAMBLE_STEP = 0


@dataclasses.dataclass(frozen=True)
class StorySession:
    owner: str
    bucket: Bucket
    current_step: int
    step_content: Mapping[int, str] = dataclasses.field(default_factory=dict)
    status: StoryStatus = StoryStatus.DRAFT
    id: Optional[str] = None
    owner_email: Optional[str] = None
    title: Optional[str] = None
    inspiration_text: Optional[str] = None
    inspiration_image_ref: Optional[str] = None
    scores: Optional[ScoreSet] = None
    summary: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_locked(self) -> bool:
        return self.status is StoryStatus.LOCKED

    @property
    def min_step(self) -> int:
        return first_step(self.bucket)

    def content_for(self, step: int) -> str:
        return self.step_content.get(step, "")

    def has_content(self) -> bool:
        return any(t.strip() for t in self.step_content.values()) or bool(
            (self.inspiration_text or "").strip() or self.inspiration_image_ref
        )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class SaveDraft:
    """Merge edited content; ``None`` fields are left unchanged."""
    content: Optional[Mapping[int, str]] = None
    inspiration_text: Optional[str] = None
    inspiration_image_ref: Optional[str] = None
    title: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class Begin:
    pass


@dataclasses.dataclass(frozen=True)
class Advance:
    verdict: Optional[TruthVerdict] = None
    override: bool = False


@dataclasses.dataclass(frozen=True)
class Back:
    pass


@dataclasses.dataclass(frozen=True)
class Lock:
    result: Optional[ScoringResult] = None


Event = Union[SaveDraft, Begin, Advance, Back, Lock]


# ---------------------------------------------------------------------------
# Outcomes and effects
# ---------------------------------------------------------------------------

class Outcome(str, enum.Enum):
    SAVED = "saved"
    BEGUN = "begun"
    ADVANCED = "advanced"
    BLOCKED_TOO_SHORT = "blocked_too_short"
    BLOCKED_BY_GATE = "blocked_by_gate"
    MOVED_BACK = "moved_back"
    AT_FIRST_STEP = "at_first_step"
    LOCKED = "locked"
    ALREADY_LOCKED = "already_locked"


@dataclasses.dataclass(frozen=True)
class CoachWarning:
    step: int
    soft_nudge: Optional[str]
    hook_detected: bool
    cta_detected: bool
    blocking: bool


@dataclasses.dataclass(frozen=True)
class RecapRequested:
    story_id: Optional[str]
    email: Optional[str]
    scores: ScoreSet
    content: Dict[int, str]
    bucket: str
    summary: Optional[str] = None


Effect = Union[CoachWarning, RecapRequested]


@dataclasses.dataclass(frozen=True)
class Transition:
    session: StorySession
    outcome: Outcome
    effects: Tuple[Effect, ...] = ()
    verdict: Optional[TruthVerdict] = None

    @property
    def changed(self) -> bool:
        return self.outcome in {
            Outcome.SAVED, Outcome.BEGUN, Outcome.ADVANCED, Outcome.MOVED_BACK, Outcome.LOCKED,
        }


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def first_step(bucket: Bucket) -> int:
    inspiration = {Bucket.parse(b) for b in get_settings().inspiration_buckets}
    return PREAMBLE_STEP if bucket in inspiration else GATE_STEP


def meets_minimum(text: Optional[str]) -> bool:
    return len((text or "").strip()) > get_settings().min_step_chars


def new_session(owner: str, bucket: Bucket, now: Optional[datetime] = None, **fields) -> StorySession:
    now = now or _utcnow()
    return StorySession(
        owner=owner,
        bucket=bucket,
        current_step=first_step(bucket),
        created_at=now,
        updated_at=now,
        **fields,
    )


def transition(session: StorySession, event: Event, now: Optional[datetime] = None) -> Transition:
    now = now or _utcnow()
    if isinstance(event, Lock):
        return _lock(session, event, now)
    if session.is_locked:
        if isinstance(event, SaveDraft):
            raise StoryLocked("Locked stories cannot be edited")
        raise InvalidTransition("Story is locked")

    if isinstance(event, SaveDraft):
        return _save(session, event, now)
    if isinstance(event, Begin):
        return _begin(session, now)
    if isinstance(event, Advance):
        return _advance(session, event, now)
    if isinstance(event, Back):
        return _back(session, now)
    raise InvalidTransition(f"Unknown event: {type(event).__name__}")


def _save(session: StorySession, event: SaveDraft, now: datetime) -> Transition:
    updates: dict = {}
    if event.content is not None:
        highest = max(session.current_step, GATE_STEP)
        merged = dict(session.step_content)
        for step, text in event.content.items():
            if not GATE_STEP <= step <= highest:
                raise InvalidTransition(f"Step {step} is not reachable yet")
            merged[step] = text
        updates["step_content"] = merged
    for name in ("inspiration_text", "inspiration_image_ref", "title"):
        value = getattr(event, name)
        if value is not None:
            updates[name] = value
    if not updates:
        return Transition(session, Outcome.SAVED)
    return Transition(dataclasses.replace(session, updated_at=now, **updates), Outcome.SAVED)


def _begin(session: StorySession, now: datetime) -> Transition:
    if session.current_step != PREAMBLE_STEP:
        raise InvalidTransition("Story has already begun")
    return Transition(dataclasses.replace(session, current_step=GATE_STEP, updated_at=now), Outcome.BEGUN)


def _advance(session: StorySession, event: Advance, now: datetime) -> Transition:
    step = session.current_step
    total = get_settings().total_steps
    if step == PREAMBLE_STEP:
        raise InvalidTransition("Begin the story before advancing")
    if step >= total:
        raise InvalidTransition("The final step is completed by locking the story")

    if not meets_minimum(session.content_for(step)):
        return Transition(session, Outcome.BLOCKED_TOO_SHORT)

    verdict = event.verdict or TruthVerdict.permissive()
    blocking = step == GATE_STEP
    effects: Tuple[Effect, ...] = ()
    if verdict.flagged or (verdict.needs_refinement and not blocking):
        effects = (CoachWarning(
            step=step,
            soft_nudge=verdict.soft_nudge,
            hook_detected=verdict.hook_detected,
            cta_detected=verdict.cta_detected,
            blocking=blocking,
        ),)

    if blocking and verdict.needs_refinement and not event.override:
        return Transition(session, Outcome.BLOCKED_BY_GATE, effects, verdict)

    advanced = dataclasses.replace(session, current_step=step + 1, updated_at=now)
    return Transition(advanced, Outcome.ADVANCED, effects, verdict)


def _back(session: StorySession, now: datetime) -> Transition:
    if session.current_step <= session.min_step:
        return Transition(session, Outcome.AT_FIRST_STEP)
    moved = dataclasses.replace(session, current_step=session.current_step - 1, updated_at=now)
    return Transition(moved, Outcome.MOVED_BACK)


def check_lockable(session: StorySession) -> Optional[Transition]:
    """Run the lock guards that need no scoring result.

    Returns the refusing transition, or ``None`` when scoring may proceed.
    """
    if session.is_locked:
        return Transition(session, Outcome.ALREADY_LOCKED)

    total = get_settings().total_steps
    if session.current_step != total:
        raise InvalidTransition(f"Only step {total} can be locked")
    if not meets_minimum(session.content_for(total)):
        return Transition(session, Outcome.BLOCKED_TOO_SHORT)
    return None


def _lock(session: StorySession, event: Lock, now: datetime) -> Transition:
    refused = check_lockable(session)
    if refused is not None:
        return refused
    if event.result is None:
        raise InvalidTransition("Locking requires a scoring result")

    scores = event.result.score_set()
    locked = dataclasses.replace(
        session,
        status=StoryStatus.LOCKED,
        scores=scores,
        summary=event.result.summary,
        updated_at=now,
    )
    recap = RecapRequested(
        story_id=session.id,
        email=session.owner_email,
        scores=scores,
        content=dict(session.step_content),
        bucket=session.bucket.value,
        summary=event.result.summary,
    )
    return Transition(locked, Outcome.LOCKED, (recap,))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
