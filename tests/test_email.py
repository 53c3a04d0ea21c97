"""Tests for recap/reminder formatting and Resend delivery."""

import asyncio
import json

import httpx
import pytest

from sanctuary.errors import EmailDeliveryError
from sanctuary.schemas.analysis import ScoreSet
from sanctuary.services.email import (
    DraftSummary,
    EmailMessage,
    ResendMailer,
    build_recap_email,
    build_reminder_email,
)

SCORES = ScoreSet(authenticity=80, vulnerability=70, credibility=75, cringe_risk=10, platform_play=5)


class TestRecapEmail:
    def test_subject_names_the_bucket(self):
        message = build_recap_email(SCORES, {1: "x"}, "business")
        assert message.subject == "Your BUSINESS Story — Locked & Scored"

    def test_outline_in_step_order_with_titles(self):
        html = build_recap_email(SCORES, {12: "the last words", 1: "the first words"}).html
        assert html.index("THE MOMENT") < html.index("the first words") < html.index("THE MESSAGE")
        assert html.index("the first words") < html.index("the last words")

    def test_scores_rendered(self):
        html = build_recap_email(SCORES, {1: "x"}).html
        for label, value in [("Authenticity", 80), ("Cringe Risk", 10), ("Platform Play", 5)]:
            assert label in html
            assert f">{value}</td>" in html

    def test_user_text_is_escaped(self):
        html = build_recap_email(SCORES, {1: "<script>alert(1)</script>"}, summary='"quoted" & <b>').html
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "&amp; &lt;b&gt;" in html

    def test_summary_is_optional(self):
        assert "font-style:italic" not in build_recap_email(SCORES, {1: "x"}).html


class TestReminderEmail:
    def test_singular_subject(self):
        message = build_reminder_email([DraftSummary(title=None, bucket="personal", current_step=3)])
        assert message.subject == "You have 1 unfinished story"
        assert "Untitled Story" in message.html
        assert "Step 3 of 12" in message.html

    def test_plural_subject(self):
        drafts = [
            DraftSummary(title="Rain", bucket="business", current_step=1),
            DraftSummary(title="Dad", bucket="industry", current_step=11),
        ]
        message = build_reminder_email(drafts)
        assert message.subject == "You have 2 unfinished stories"
        assert "INDUSTRY" in message.html


class TestResendMailer:
    MESSAGE = EmailMessage(subject="hi", html="<p>hi</p>")

    def test_posts_to_resend(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "msg_123"})

        mailer = ResendMailer(api_key="re_test", transport=httpx.MockTransport(handler))
        assert asyncio.run(mailer.send("a@example.com", self.MESSAGE)) == "msg_123"

        (request,) = seen
        assert request.headers["Authorization"] == "Bearer re_test"
        payload = json.loads(request.content)
        assert payload["to"] == ["a@example.com"]
        assert payload["subject"] == "hi"
        assert payload["html"] == "<p>hi</p>"

    def test_accepted_without_json_body_returns_empty_id(self):
        mailer = ResendMailer(
            api_key="re_test",
            transport=httpx.MockTransport(lambda request: httpx.Response(202, text="queued")),
        )
        assert asyncio.run(mailer.send("a@example.com", self.MESSAGE)) == ""

    def test_error_status_raises_with_code(self):
        mailer = ResendMailer(
            api_key="re_test",
            transport=httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "bad"})),
        )
        with pytest.raises(EmailDeliveryError) as excinfo:
            asyncio.run(mailer.send("a@example.com", self.MESSAGE))
        assert excinfo.value.status_code == 422

    def test_transport_error_raises_without_code(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        mailer = ResendMailer(api_key="re_test", transport=httpx.MockTransport(handler))
        with pytest.raises(EmailDeliveryError) as excinfo:
            asyncio.run(mailer.send("a@example.com", self.MESSAGE))
        assert excinfo.value.status_code is None

    def test_missing_key_raises(self):
        with pytest.raises(EmailDeliveryError):
            asyncio.run(ResendMailer(api_key="").send("a@example.com", self.MESSAGE))
