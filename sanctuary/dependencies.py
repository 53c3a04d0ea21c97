"""
Collaborators handed to the routers through ``Depends``.

Stateless clients are built on first use so importing the app never needs API
keys. The workflow and the outbox own asyncio primitives, so the lifespan
builds them per running loop and keeps them on ``app.state``. Tests replace
any of these with ``app.dependency_overrides``.
"""
from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request

from sanctuary.database import AsyncSessionLocal
from sanctuary.services.analysis import FidelityReviewer, StoryScorer, TruthDetector
from sanctuary.services.completion import GeminiCompletionClient
from sanctuary.services.email import ResendMailer
from sanctuary.services.outbox import RecapOutbox
from sanctuary.services.transcription import Transcriber
from sanctuary.workflow.service import StoryWorkflow

_completion = None
_transcriber = None
_mailer = None


def get_completion_client():
    global _completion
    if _completion is None:
        _completion = GeminiCompletionClient()
    return _completion


def get_transcriber() -> Transcriber:
    global _transcriber
    if _transcriber is None:
        _transcriber = Transcriber()
    return _transcriber


def get_mailer() -> ResendMailer:
    global _mailer
    if _mailer is None:
        _mailer = ResendMailer()
    return _mailer


def get_session_factory():
    return AsyncSessionLocal


def build_workflow(completion, outbox: RecapOutbox, session_factory=None) -> StoryWorkflow:
    return StoryWorkflow(
        session_factory or AsyncSessionLocal,
        detector=TruthDetector(completion),
        scorer=StoryScorer(completion),
        reviewer=FidelityReviewer(completion),
        outbox=outbox,
    )


def get_workflow(request: Request) -> StoryWorkflow:
    return request.app.state.workflow


class CurrentUser:
    __slots__ = ("id", "email")

    def __init__(self, id: str, email: Optional[str] = None):
        self.id = id
        self.email = email


async def current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
) -> CurrentUser:
    """Identity asserted by the authenticating proxy in front of this service."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return CurrentUser(id=x_user_id.strip(), email=(x_user_email or "").strip() or None)
