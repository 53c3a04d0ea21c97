"""Story wizard endpoints: drafts, navigation, locking and published reviews."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from sanctuary.dependencies import CurrentUser, current_user, get_workflow
from sanctuary.schemas.requests import (
    AdvanceRequest,
    CreateStoryRequest,
    DraftFields,
    LockRequest,
    PublishedReviewRequest,
    StartStoryRequest,
)
from sanctuary.schemas.responses import (
    review_to_wire,
    story_summary_to_wire,
    story_to_wire,
    transition_to_wire,
)
from sanctuary.workflow.machine import SaveDraft
from sanctuary.workflow.service import StoryWorkflow

router = APIRouter()


def _draft(fields: DraftFields) -> SaveDraft:
    return SaveDraft(
        content=fields.content,
        inspiration_text=fields.inspiration_text,
        inspiration_image_ref=fields.inspiration_image_ref,
        title=fields.title,
    )


@router.post("/stories")
async def create_story(
    request: CreateStoryRequest,
    user: CurrentUser = Depends(current_user),
    workflow: StoryWorkflow = Depends(get_workflow),
):
    session = await workflow.create(user.id, request.bucket, _draft(request), owner_email=user.email)
    return story_to_wire(session)


@router.get("/stories")
async def list_stories(
    user: CurrentUser = Depends(current_user),
    workflow: StoryWorkflow = Depends(get_workflow),
):
    return [story_summary_to_wire(s) for s in await workflow.list(user.id)]


@router.post("/stories/advance")
async def start_and_advance(
    request: StartStoryRequest,
    user: CurrentUser = Depends(current_user),
    workflow: StoryWorkflow = Depends(get_workflow),
):
    """Advance a story that has not been saved yet; it is created on the way."""
    result = await workflow.advance(
        user.id,
        content=request.content,
        override=request.override,
        bucket=request.bucket,
        owner_email=user.email,
    )
    return transition_to_wire(result)


@router.get("/stories/{story_id}")
async def get_story(
    story_id: str,
    user: CurrentUser = Depends(current_user),
    workflow: StoryWorkflow = Depends(get_workflow),
):
    return story_to_wire(await workflow.get(story_id, user.id))


@router.patch("/stories/{story_id}")
async def save_draft(
    story_id: str,
    request: DraftFields,
    user: CurrentUser = Depends(current_user),
    workflow: StoryWorkflow = Depends(get_workflow),
):
    session = await workflow.save_draft(story_id, user.id, _draft(request))
    return story_to_wire(session)


@router.post("/stories/{story_id}/begin")
async def begin_story(
    story_id: str,
    user: CurrentUser = Depends(current_user),
    workflow: StoryWorkflow = Depends(get_workflow),
):
    return transition_to_wire(await workflow.begin(story_id, user.id))


@router.post("/stories/{story_id}/advance")
async def advance_story(
    story_id: str,
    request: Optional[AdvanceRequest] = None,
    user: CurrentUser = Depends(current_user),
    workflow: StoryWorkflow = Depends(get_workflow),
):
    request = request or AdvanceRequest()
    result = await workflow.advance(
        user.id,
        story_id=story_id,
        content=request.content,
        override=request.override,
    )
    return transition_to_wire(result)


@router.post("/stories/{story_id}/back")
async def back_story(
    story_id: str,
    user: CurrentUser = Depends(current_user),
    workflow: StoryWorkflow = Depends(get_workflow),
):
    return transition_to_wire(await workflow.back(story_id, user.id))


@router.post("/stories/{story_id}/lock")
async def lock_story(
    story_id: str,
    request: Optional[LockRequest] = None,
    user: CurrentUser = Depends(current_user),
    workflow: StoryWorkflow = Depends(get_workflow),
):
    content = request.content if request else None
    return transition_to_wire(await workflow.lock(story_id, user.id, content=content))


@router.post("/stories/{story_id}/reviews")
async def review_published(
    story_id: str,
    request: PublishedReviewRequest,
    user: CurrentUser = Depends(current_user),
    workflow: StoryWorkflow = Depends(get_workflow),
):
    record = await workflow.review_published(story_id, user.id, request.published_text)
    return review_to_wire(record)


@router.get("/stories/{story_id}/reviews")
async def list_reviews(
    story_id: str,
    user: CurrentUser = Depends(current_user),
    workflow: StoryWorkflow = Depends(get_workflow),
):
    return [review_to_wire(r) for r in await workflow.list_reviews(story_id, user.id)]
