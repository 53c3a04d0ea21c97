"""Stateless analysis, transcription and email endpoints."""

from __future__ import annotations

import base64
import binascii

from fastapi import APIRouter, Depends, HTTPException

from sanctuary.dependencies import get_completion_client, get_mailer, get_session_factory, get_transcriber
from sanctuary.schemas.requests import (
    AuthenticityRequest,
    RecapEmailRequest,
    ReviewPublishedRequest,
    ScoreStoryRequest,
    TranscribeRequest,
)
from sanctuary.services.analysis import FidelityReviewer, StoryScorer, TruthDetector
from sanctuary.services.email import ResendMailer, build_recap_email
from sanctuary.services.reminders import send_unfinished_reminders
from sanctuary.services.transcription import Transcriber
from sanctuary.utils.logging_config import get_logger

router = APIRouter()
logger = get_logger("sanctuary.routers.analysis")


@router.post("/check-authenticity")
async def check_authenticity(request: AuthenticityRequest, completion=Depends(get_completion_client)):
    verdict = await TruthDetector(completion).check(request.text, step=request.step)
    return verdict.model_dump(by_alias=True, exclude_none=True)


@router.post("/score-story")
async def score_story(request: ScoreStoryRequest, completion=Depends(get_completion_client)):
    result = await StoryScorer(completion).score(request.content)
    return result.model_dump(by_alias=True)


@router.post("/review-published-story")
async def review_published_story(request: ReviewPublishedRequest, completion=Depends(get_completion_client)):
    review = await FidelityReviewer(completion).review(request.original_content, request.published_text)
    return review.model_dump(by_alias=True)


@router.post("/transcribe-audio")
async def transcribe_audio(request: TranscribeRequest, transcriber: Transcriber = Depends(get_transcriber)):
    try:
        audio = base64.b64decode(request.audio, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="audio must be base64 encoded")

    result = await transcriber.transcribe(audio, request.mime_type)
    return {"text": result.text, "speechDetected": result.speech_detected}


@router.post("/send-recap-email")
async def send_recap_email(request: RecapEmailRequest, mailer: ResendMailer = Depends(get_mailer)):
    message = build_recap_email(
        request.scores.score_set(),
        request.content,
        request.bucket,
        request.scores.summary,
    )
    message_id = await mailer.send(request.email, message)
    return {"success": True, "id": message_id}


@router.post("/send-unfinished-reminders")
async def send_reminders(
    mailer: ResendMailer = Depends(get_mailer),
    session_factory=Depends(get_session_factory),
):
    return await send_unfinished_reminders(session_factory, mailer)
