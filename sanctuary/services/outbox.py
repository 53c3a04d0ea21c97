"""
Fire-and-forget delivery channel for recap emails.

The workflow enqueues a ``RecapRequested`` effect and returns immediately;
a single background worker (started by the app lifespan) formats and sends
the message. Failures are logged here and never reach the locking caller.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from sanctuary.config import get_settings
from sanctuary.errors import EmailDeliveryError
from sanctuary.services.email import ResendMailer, build_recap_email
from sanctuary.utils.logging_config import StoryAdapter, get_logger
from sanctuary.workflow.machine import RecapRequested

_logger = get_logger("sanctuary.outbox")


def _is_transient(exc: BaseException) -> bool:
    if not isinstance(exc, EmailDeliveryError):
        return False
    return exc.status_code is None or exc.status_code == 429 or exc.status_code >= 500


class RecapOutbox:
    def __init__(self, mailer: Optional[ResendMailer] = None, max_attempts: Optional[int] = None, wait=None):
        self._mailer = mailer or ResendMailer()
        self._max_attempts = max_attempts or get_settings().outbox_max_attempts
        self._wait = wait if wait is not None else wait_exponential(multiplier=1, max=10)
        self._queue: asyncio.Queue[RecapRequested] = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="recap-outbox")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    def enqueue(self, job: RecapRequested) -> None:
        """Queue a recap without waiting for it. Never raises."""
        if not job.email:
            StoryAdapter(_logger, job.story_id).info("recap skipped: no email on file")
            return
        self._queue.put_nowait(job)

    async def drain(self) -> None:
        """Wait until every queued recap has been attempted."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.deliver(job)
            except Exception:
                StoryAdapter(_logger, job.story_id).exception("recap delivery failed")
            finally:
                self._queue.task_done()

    async def deliver(self, job: RecapRequested) -> str:
        log = StoryAdapter(_logger, job.story_id)
        message = build_recap_email(job.scores, job.content, job.bucket, job.summary)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._wait,
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    log.warning("retrying recap", extra={"attempt": attempt.retry_state.attempt_number})
                message_id = await self._mailer.send(job.email, message)
        log.info("recap sent", extra={"event_type": "recap_sent", "metadata": {"id": message_id}})
        return message_id
