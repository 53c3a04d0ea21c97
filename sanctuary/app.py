"""FastAPI application factory, CORS, and error mapping."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from sanctuary.errors import (
    AnalysisError,
    EmailDeliveryError,
    EmptyDraft,
    InvalidTransition,
    ScoringError,
    StoryLocked,
    StoryNotFound,
    TranscriptionError,
    UpstreamError,
)
from sanctuary.utils.logging_config import get_logger

logger = get_logger("sanctuary.app")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PATCH, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, x-user-id, x-user-email",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    from sanctuary.database import create_tables, engine
    from sanctuary.dependencies import build_workflow, get_completion_client, get_mailer
    from sanctuary.services.outbox import RecapOutbox

    # Ensure tables exist
    await create_tables()

    outbox = RecapOutbox(get_mailer())
    outbox.start()
    app.state.outbox = outbox
    app.state.workflow = build_workflow(get_completion_client(), outbox)
    logger.info("startup complete", extra={"event_type": "startup"})
    yield
    await app.state.workflow.autosaver.flush_all()
    await outbox.stop()
    await engine.dispose()


app = FastAPI(title="The Sanctuary", version="1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Added after CORSMiddleware so it runs first: every OPTIONS request is a
# successful empty preflight, with or without an Origin header.
@app.middleware("http")
async def answer_preflight(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    return await call_next(request)


# --- Error mapping ---

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _describe_validation(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error(400, _describe_validation(exc))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(EmptyDraft)
async def empty_draft_handler(request: Request, exc: EmptyDraft):
    return _error(400, str(exc))


@app.exception_handler(StoryNotFound)
async def not_found_handler(request: Request, exc: StoryNotFound):
    return _error(404, "Story not found")


@app.exception_handler(StoryLocked)
async def locked_handler(request: Request, exc: StoryLocked):
    return _error(409, str(exc))


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return _error(409, str(exc))


# Upstream details are logged, never returned
_GENERIC_MESSAGES = (
    (ScoringError, "Scoring failed"),
    (AnalysisError, "Analysis failed"),
    (TranscriptionError, "Transcription failed"),
    (EmailDeliveryError, "Failed to send email"),
    (UpstreamError, "Upstream service failed"),
)


@app.exception_handler(ScoringError)
@app.exception_handler(AnalysisError)
@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: Exception):
    logger.warning(
        "%s %s failed: %s", request.method, request.url.path, exc,
        extra={"event_type": "upstream_error", "status_code": getattr(exc, "status_code", None)},
    )
    for kind, message in _GENERIC_MESSAGES:
        if isinstance(exc, kind):
            return _error(500, message)
    return _error(500, "Internal server error")


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s crashed", request.method, request.url.path)
    return _error(500, "Internal server error")
