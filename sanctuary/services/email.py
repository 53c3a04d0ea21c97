"""
Recap and reminder emails.

``build_recap_email`` / ``build_reminder_email`` are pure formatters;
``ResendMailer`` delivers a message through the Resend HTTP API.
"""
from __future__ import annotations

import dataclasses
from html import escape
from typing import Iterable, List, Mapping, Optional, Sequence

import httpx

from sanctuary.config import get_settings
from sanctuary.errors import EmailDeliveryError
from sanctuary.schemas.analysis import ScoreSet
from sanctuary.schemas.story import step_title
from sanctuary.utils.logging_config import get_logger

_logger = get_logger("sanctuary.email")


@dataclasses.dataclass(frozen=True)
class EmailMessage:
    subject: str
    html: str


@dataclasses.dataclass(frozen=True)
class DraftSummary:
    """What a reminder needs to know about one unfinished story."""
    title: Optional[str]
    bucket: str
    current_step: int


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

_HEADER = """<div style="text-align:center;margin-bottom:32px;">
      <h1 style="font-family:monospace;font-size:24px;letter-spacing:4px;color:#fff;margin:0;">THE SANCTUARY</h1>
      <p style="font-family:monospace;font-size:12px;color:#666;margin:8px 0 0;">DISRUPTUR STORY OS</p>
    </div>"""

_CARD = "background:#111;border:1px solid #333;border-radius:8px;padding:24px;margin-bottom:24px;"
_CARD_TITLE = "font-family:monospace;font-size:14px;color:#888;margin:0 0 16px;text-transform:uppercase;"


def _page(body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="margin:0;padding:0;background:#0a0a0a;color:#fff;">
  <div style="max-width:600px;margin:0 auto;padding:40px 20px;">
    {_HEADER}
    {body}
  </div>
</body>
</html>"""


def _score_color(value: int, higher_is_worse: bool) -> str:
    good, warn, bad = "#44ff88", "#ffaa00", "#ff4444"
    if higher_is_worse:
        return bad if value > 60 else warn if value > 30 else good
    return good if value > 60 else warn if value > 30 else bad


def _score_row(label: str, value: int, higher_is_worse: bool = False) -> str:
    color = _score_color(value, higher_is_worse)
    return f"""<tr>
      <td style="padding:8px 0;font-family:monospace;font-size:13px;color:#888;text-transform:uppercase;">{label}</td>
      <td style="padding:8px 0;width:60%;">
        <div style="background:#222;border-radius:4px;height:20px;width:100%;">
          <div style="background:{color};border-radius:4px;height:20px;width:{value}%;"></div>
        </div>
      </td>
      <td style="padding:8px 8px;font-family:monospace;font-size:14px;color:#fff;text-align:right;font-weight:bold;">{value}</td>
    </tr>"""


def build_recap_email(
    scores: ScoreSet,
    content: Mapping[int, str],
    bucket: str = "personal",
    summary: Optional[str] = None,
) -> EmailMessage:
    bucket_label = escape((bucket or "personal").upper())

    outline = "".join(
        f"""<tr>
        <td style="padding:12px 16px;font-family:monospace;font-size:12px;color:#888;text-transform:uppercase;vertical-align:top;width:140px;border-bottom:1px solid #222;">{escape(step_title(step))}</td>
        <td style="padding:12px 16px;font-family:Georgia,serif;font-size:15px;color:#ccc;line-height:1.6;border-bottom:1px solid #222;">{escape(text)}</td>
      </tr>"""
        for step, text in sorted(content.items())
    )

    summary_html = ""
    if summary:
        summary_html = (
            '<p style="font-family:Georgia,serif;font-size:15px;color:#aaa;margin:0;'
            f'line-height:1.5;font-style:italic;">"{escape(summary)}"</p>'
        )

    body = f"""<div style="{_CARD}">
      <h2 style="font-family:monospace;font-size:14px;color:#888;margin:0 0 4px;text-transform:uppercase;">Story Locked</h2>
      <p style="font-family:monospace;font-size:18px;color:#fff;margin:0 0 16px;text-transform:uppercase;">{bucket_label} STORY</p>
      {summary_html}
    </div>

    <div style="{_CARD}">
      <h2 style="{_CARD_TITLE}">Score Breakdown</h2>
      <table style="width:100%;border-collapse:collapse;">
        {_score_row("Authenticity", scores.authenticity)}
        {_score_row("Vulnerability", scores.vulnerability)}
        {_score_row("Credibility", scores.credibility)}
        {_score_row("Cringe Risk", scores.cringe_risk, higher_is_worse=True)}
        {_score_row("Platform Play", scores.platform_play, higher_is_worse=True)}
      </table>
    </div>

    <div style="{_CARD}">
      <h2 style="{_CARD_TITLE}">Your Story Outline</h2>
      <table style="width:100%;border-collapse:collapse;">
        {outline}
      </table>
    </div>

    <div style="text-align:center;padding:24px 0;">
      <p style="font-family:monospace;font-size:11px;color:#444;">This story is now locked. Your truth has been recorded.</p>
    </div>"""

    return EmailMessage(
        subject=f"Your {bucket_label} Story — Locked & Scored",
        html=_page(body),
    )


def _story_word(count: int) -> str:
    return "story" if count == 1 else "stories"


def build_reminder_email(drafts: Sequence[DraftSummary], total_steps: int = 12) -> EmailMessage:
    settings = get_settings()
    count = len(drafts)

    rows = "".join(
        f"""<tr>
        <td style="padding:12px 16px;font-family:Georgia,serif;font-size:15px;color:#ccc;border-bottom:1px solid #222;">{escape(d.title or "Untitled Story")}</td>
        <td style="padding:12px 16px;font-family:monospace;font-size:12px;color:#888;text-transform:uppercase;border-bottom:1px solid #222;">{escape((d.bucket or "personal").upper())}</td>
        <td style="padding:12px 16px;font-family:monospace;font-size:12px;color:#888;border-bottom:1px solid #222;white-space:nowrap;">Step {d.current_step} of {total_steps}</td>
      </tr>"""
        for d in drafts
    )

    body = f"""<div style="{_CARD}">
      <h2 style="font-family:monospace;font-size:14px;color:#888;margin:0 0 4px;text-transform:uppercase;">Unfinished Business</h2>
      <p style="font-family:Georgia,serif;font-size:18px;color:#fff;margin:0 0 8px;">You have <strong>{count}</strong> unfinished {_story_word(count)}.</p>
      <p style="font-family:Georgia,serif;font-size:15px;color:#aaa;margin:0;line-height:1.5;">Your stories are waiting. The truth doesn't finish itself.</p>
    </div>

    <div style="{_CARD}">
      <h2 style="{_CARD_TITLE}">Your Drafts</h2>
      <table style="width:100%;border-collapse:collapse;">
        {rows}
      </table>
    </div>

    <div style="text-align:center;margin-bottom:24px;">
      <a href="{escape(settings.app_url)}" style="display:inline-block;padding:14px 32px;background:#fff;color:#0a0a0a;font-family:monospace;font-size:14px;font-weight:bold;text-decoration:none;border-radius:6px;letter-spacing:2px;text-transform:uppercase;">Continue Writing</a>
    </div>"""

    return EmailMessage(
        subject=f"You have {count} unfinished {_story_word(count)}",
        html=_page(body),
    )


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

class ResendMailer:
    """Sends one message per call through the Resend API."""

    def __init__(self, api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.resend_api_key
        self._url = settings.resend_api_url
        self._sender = settings.email_from
        self._timeout = settings.request_timeout_seconds
        self._transport = transport

    async def send(self, to: str | Iterable[str], message: EmailMessage) -> str:
        if not self._api_key:
            raise EmailDeliveryError("RESEND_API_KEY is not configured")

        recipients: List[str] = [to] if isinstance(to, str) else list(to)
        payload = {
            "from": self._sender,
            "to": recipients,
            "subject": message.subject,
            "html": message.html,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self._url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
        except httpx.HTTPError as exc:
            _logger.error("email transport error: %s", exc, extra={"event_type": "email_error"})
            raise EmailDeliveryError("Email service unreachable") from exc

        if response.status_code >= 400:
            _logger.error(
                "email api error: %.500s", response.text,
                extra={"event_type": "email_error", "status_code": response.status_code},
            )
            raise EmailDeliveryError("Email service rejected the message", status_code=response.status_code)

        try:
            body = response.json()
        except ValueError:
            # Accepted but unparseable: delivered without a message id
            body = {}
        message_id = str(body.get("id", "")) if isinstance(body, dict) else ""
        _logger.info("email sent", extra={"event_type": "email_sent", "metadata": {"id": message_id}})
        return message_id
