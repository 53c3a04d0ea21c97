"""Shared fixtures: throwaway SQLite databases and scripted collaborators."""

import os
import tempfile

# Settings are read once and cached; point them at scratch locations before
# anything under sanctuary is imported.
_SCRATCH = tempfile.mkdtemp(prefix="sanctuary-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_SCRATCH}/app.db"
os.environ["LOG_FILE"] = os.path.join(_SCRATCH, "server.log")
os.environ["RESEND_API_KEY"] = ""

from contextlib import asynccontextmanager

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from sanctuary.errors import CompletionError
from sanctuary.models import Base
from sanctuary.services.analysis import FidelityReviewer, StoryScorer, TruthDetector
from sanctuary.workflow.service import StoryWorkflow


PASSING_VERDICT = '{"needsRefinement": false, "hookDetected": false, "ctaDetected": false, "softNudge": null}'
BLOCKING_VERDICT = (
    '{"needsRefinement": true, "hookDetected": true, "ctaDetected": false, '
    '"softNudge": "start with what happened, not the lesson"}'
)
SAMPLE_SCORES = (
    '{"authenticity": 80, "vulnerability": 70, "credibility": 75, '
    '"cringeRisk": 10, "platformPlay": 5, "hookDetected": false, '
    '"ctaDetected": false, "summary": "A quiet, specific story."}'
)


class FakeCompletion:
    """Completion client scripted per task.

    ``replies`` maps a task name to a reply or a list of replies (consumed in
    order, the last one repeating). A reply that is an exception is raised.
    """

    def __init__(self, **replies):
        self.replies = {task: list(r) if isinstance(r, list) else [r] for task, r in replies.items()}
        self.calls = []

    def count(self, task):
        return sum(1 for t, _ in self.calls if t == task)

    async def complete(self, prompt, *, task, max_output_tokens):
        self.calls.append((task, prompt))
        queue = self.replies.get(task)
        if not queue:
            raise CompletionError(f"no scripted reply for {task}")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply


class RecordingOutbox:
    def __init__(self):
        self.jobs = []

    def enqueue(self, job):
        self.jobs.append(job)


@asynccontextmanager
async def sqlite_sessions(path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    finally:
        await engine.dispose()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "stories.db"


@pytest.fixture
def completion_factory():
    return FakeCompletion


@pytest.fixture
def outbox():
    return RecordingOutbox()


@pytest.fixture
def workflow_env(db_path, outbox):
    """Returns ``open(completion)``: an async context yielding a ready workflow.

    The engine lives inside the test's own event loop and is disposed on exit.
    """

    @asynccontextmanager
    async def _open(completion, autosave_delay=0.05):
        async with sqlite_sessions(db_path) as factory:
            yield StoryWorkflow(
                factory,
                detector=TruthDetector(completion),
                scorer=StoryScorer(completion),
                reviewer=FidelityReviewer(completion),
                outbox=outbox,
                autosave_delay=autosave_delay,
            )

    return _open
