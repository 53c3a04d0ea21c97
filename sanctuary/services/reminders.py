"""Nudge owners of unfinished drafts, one email per owner."""

from __future__ import annotations

from collections import OrderedDict
from typing import Dict, List

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sanctuary.config import get_settings
from sanctuary.errors import EmailDeliveryError
from sanctuary.repository import StoryRepository
from sanctuary.services.email import DraftSummary, ResendMailer, build_reminder_email
from sanctuary.utils.logging_config import get_logger
from sanctuary.workflow.machine import StorySession

_logger = get_logger("sanctuary.reminders")


async def send_unfinished_reminders(
    session_factory: async_sessionmaker[AsyncSession],
    mailer: ResendMailer,
) -> dict:
    async with session_factory() as db:
        drafts = await StoryRepository(db).list_drafts()

    if not drafts:
        return {"success": True, "sent": 0, "message": "No draft stories found"}

    by_owner: Dict[str, List[StorySession]] = OrderedDict()
    for story in drafts:
        by_owner.setdefault(story.owner, []).append(story)

    total_steps = get_settings().total_steps
    sent = 0
    errors: List[str] = []
    for owner, stories in by_owner.items():
        email = next((s.owner_email for s in stories if s.owner_email), None)
        if not email:
            errors.append(f"Could not fetch email for user {owner}")
            continue

        message = build_reminder_email(
            [DraftSummary(title=s.title, bucket=s.bucket.value, current_step=s.current_step) for s in stories],
            total_steps=total_steps,
        )
        try:
            await mailer.send(email, message)
        except EmailDeliveryError as exc:
            errors.append(f"Failed to send to {email}: {exc.status_code or 'unreachable'}")
            continue
        sent += 1

    _logger.info(
        "reminders sent",
        extra={"event_type": "reminders", "metadata": {"sent": sent, "owners": len(by_owner), "errors": len(errors)}},
    )
    report = {
        "success": True,
        "sent": sent,
        "totalUsers": len(by_owner),
        "totalDrafts": len(drafts),
    }
    if errors:
        report["errors"] = errors
    return report
