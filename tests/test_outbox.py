"""Tests for the fire-and-forget recap outbox."""

import asyncio

import pytest
from tenacity import wait_none

from sanctuary.errors import EmailDeliveryError
from sanctuary.schemas.analysis import ScoreSet
from sanctuary.services.outbox import RecapOutbox
from sanctuary.workflow.machine import RecapRequested

SCORES = ScoreSet(authenticity=80, vulnerability=70, credibility=75, cringe_risk=10, platform_play=5)


def job(email="a@example.com"):
    return RecapRequested(
        story_id="s1", email=email, scores=SCORES, content={1: "the first words"}, bucket="personal",
        summary="quiet",
    )


class FlakyMailer:
    def __init__(self, *failures):
        self.failures = list(failures)
        self.sent = []

    async def send(self, to, message):
        if self.failures:
            raise self.failures.pop(0)
        self.sent.append((to, message))
        return f"msg_{len(self.sent)}"


class TestDeliver:
    def test_retries_transient_failures(self):
        mailer = FlakyMailer(EmailDeliveryError("down"), EmailDeliveryError("busy", status_code=503))
        outbox = RecapOutbox(mailer, max_attempts=3, wait=wait_none())
        assert asyncio.run(outbox.deliver(job())) == "msg_1"
        (to, message), = mailer.sent
        assert to == "a@example.com"
        assert message.subject.startswith("Your PERSONAL Story")

    def test_client_errors_are_not_retried(self):
        mailer = FlakyMailer(EmailDeliveryError("bad address", status_code=422))
        outbox = RecapOutbox(mailer, max_attempts=3, wait=wait_none())
        with pytest.raises(EmailDeliveryError):
            asyncio.run(outbox.deliver(job()))
        assert mailer.sent == []
        assert mailer.failures == []

    def test_gives_up_after_max_attempts(self):
        mailer = FlakyMailer(*[EmailDeliveryError("down", status_code=500)] * 3)
        outbox = RecapOutbox(mailer, max_attempts=2, wait=wait_none())
        with pytest.raises(EmailDeliveryError):
            asyncio.run(outbox.deliver(job()))
        assert len(mailer.failures) == 1


class TestWorker:
    def test_enqueue_returns_immediately_and_worker_sends(self):
        async def scenario():
            mailer = FlakyMailer()
            outbox = RecapOutbox(mailer, wait=wait_none())
            outbox.start()
            outbox.enqueue(job())
            assert mailer.sent == []
            await asyncio.wait_for(outbox.drain(), timeout=5)
            await outbox.stop()
            return mailer

        assert len(asyncio.run(scenario()).sent) == 1

    def test_failed_delivery_does_not_stop_the_worker(self):
        async def scenario():
            mailer = FlakyMailer(EmailDeliveryError("bad", status_code=400))
            outbox = RecapOutbox(mailer, max_attempts=1, wait=wait_none())
            outbox.start()
            outbox.enqueue(job())
            outbox.enqueue(job("b@example.com"))
            await asyncio.wait_for(outbox.drain(), timeout=5)
            await outbox.stop()
            return mailer

        mailer = asyncio.run(scenario())
        assert [to for to, _ in mailer.sent] == ["b@example.com"]

    def test_missing_email_is_skipped(self):
        async def scenario():
            mailer = FlakyMailer()
            outbox = RecapOutbox(mailer, wait=wait_none())
            outbox.enqueue(job(email=None))
            await asyncio.wait_for(outbox.drain(), timeout=5)
            return mailer

        assert asyncio.run(scenario()).sent == []
