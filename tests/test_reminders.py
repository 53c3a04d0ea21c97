"""Tests for the unfinished-draft reminder sweep."""

import asyncio

from conftest import sqlite_sessions
from sanctuary.errors import EmailDeliveryError
from sanctuary.repository import StoryRepository
from sanctuary.schemas.story import Bucket
from sanctuary.services.reminders import send_unfinished_reminders
from sanctuary.workflow.machine import new_session


class RecordingMailer:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent = []

    async def send(self, to, message):
        if to in self.fail_for:
            raise EmailDeliveryError("rejected", status_code=422)
        self.sent.append((to, message))
        return "msg"


async def seed(factory, *stories):
    async with factory() as db:
        repo = StoryRepository(db)
        for owner, email, bucket in stories:
            session = new_session(owner, bucket, owner_email=email)
            await repo.insert(session)


class TestReminders:
    def test_no_drafts(self, db_path):
        async def scenario():
            async with sqlite_sessions(db_path) as factory:
                return await send_unfinished_reminders(factory, RecordingMailer())

        assert asyncio.run(scenario()) == {"success": True, "sent": 0, "message": "No draft stories found"}

    def test_one_email_per_owner(self, db_path):
        mailer = RecordingMailer()

        async def scenario():
            async with sqlite_sessions(db_path) as factory:
                await seed(
                    factory,
                    ("u1", "one@example.com", Bucket.PERSONAL),
                    ("u1", None, Bucket.BUSINESS),
                    ("u2", "two@example.com", Bucket.INDUSTRY),
                )
                return await send_unfinished_reminders(factory, mailer)

        report = asyncio.run(scenario())
        assert report == {"success": True, "sent": 2, "totalUsers": 2, "totalDrafts": 3}
        subjects = {to: message.subject for to, message in mailer.sent}
        assert subjects == {
            "one@example.com": "You have 2 unfinished stories",
            "two@example.com": "You have 1 unfinished story",
        }

    def test_errors_are_reported_not_raised(self, db_path):
        async def scenario():
            async with sqlite_sessions(db_path) as factory:
                await seed(
                    factory,
                    ("u1", None, Bucket.BUSINESS),
                    ("u2", "bad@example.com", Bucket.BUSINESS),
                    ("u3", "ok@example.com", Bucket.BUSINESS),
                )
                return await send_unfinished_reminders(factory, RecordingMailer(fail_for={"bad@example.com"}))

        report = asyncio.run(scenario())
        assert report["sent"] == 1
        assert report["totalUsers"] == 3
        assert report["errors"] == [
            "Could not fetch email for user u1",
            "Failed to send to bad@example.com: 422",
        ]
