"""Exception taxonomy shared by services, workflow and routers."""

from __future__ import annotations


class SanctuaryError(Exception):
    """Base class for every error raised on purpose by this package."""


class UpstreamError(SanctuaryError):
    """An external service was unreachable or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CompletionError(UpstreamError):
    pass


class TranscriptionError(UpstreamError):
    pass


class EmailDeliveryError(UpstreamError):
    pass


class ScoringError(SanctuaryError):
    """Full-story scoring could not produce a valid ScoreSet."""


class AnalysisError(SanctuaryError):
    """A published-text review could not be performed."""


class InvalidTransition(SanctuaryError):
    """The requested wizard event is not allowed in the session's current state."""


class EmptyDraft(SanctuaryError):
    """Nothing has been written yet, so there is nothing to persist."""


class StoryNotFound(SanctuaryError):
    pass


class StoryLocked(SanctuaryError):
    """Content mutation attempted on a locked story."""
