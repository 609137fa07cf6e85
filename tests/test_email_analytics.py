"""Tests for email rendering and dispatch, and the analytics sink."""

import asyncio
import dataclasses

import pytest

from src.config import BusinessConfig, TimeoutConfig
from src.errors import ErrorKind, UpstreamUnavailable
from src.integrations.analytics import AnalyticsEvent, AnalyticsSink
from src.integrations.email import (
    EmailDispatcher,
    EmailTemplate,
    ResendTransport,
    render_email,
)
from src.schemas.message_schema import RequestContext
from src.storage.collections import Collections
from src.storage.persistence import PersistenceAdapter
from tests.conftest import FIXED_NOW, FakeEmailTransport, records

QUOTE_PAYLOAD = {
    "lines": [{
        "quantity": 2,
        "width": "36",
        "height": "48",
        "window_type": "double-hung",
        "material": "vinyl",
        "brand": "standard",
        "total_price": 744.58,
    }],
    "total_quantity": 2,
    "total_labor": 138.6,
    "total_tax": 38.82,
    "final_total": 744.58,
    "minimum_applied": False,
    "minimum_order_value": 500.0,
}


class SlowTransport(FakeEmailTransport):
    async def send(self, message):
        await asyncio.sleep(0.5)
        return await super().send(message)


class BrokenStore:
    async def insert(self, collection, record):
        raise ConnectionError("store offline")


def _dispatcher(transport) -> EmailDispatcher:
    return EmailDispatcher(
        transport,
        business=BusinessConfig(),
        timeouts=dataclasses.replace(TimeoutConfig(), email_sec=0.05),
    )


class TestRenderEmail:
    def test_quote_subject_and_totals(self):
        subject, html, text = render_email(EmailTemplate.QUOTE, "Jordan Rivera", QUOTE_PAYLOAD)
        assert subject == "Your Custom Window Quote - Jordan Rivera"
        assert "$744.58" in html
        assert "Total: $744.58" in text
        assert "valid for 30 days" in text

    def test_minimum_order_note(self):
        payload = {**QUOTE_PAYLOAD, "minimum_applied": True, "final_total": 500.0}
        _, html, _ = render_email(EmailTemplate.QUOTE, "Jordan", payload)
        assert "minimum order of $500.00" in html

    def test_html_is_escaped(self):
        _, html, text = render_email(EmailTemplate.WELCOME, "<b>Jo</b>", {})
        assert "&lt;b&gt;Jo&lt;/b&gt;" in html
        assert "<b>Jo</b>" in text

    def test_blank_name_in_subject(self):
        subject, _, _ = render_email(EmailTemplate.FOLLOW_UP, "", {})
        assert subject == "Following Up on Your Window Project, Valued Customer"

    def test_welcome_subject_names_company(self):
        subject, _, _ = render_email(EmailTemplate.WELCOME, "Jo", {}, BusinessConfig(name="Acme Windows"))
        assert subject == "Welcome to Acme Windows, Jo!"

    def test_analysis_template(self):
        _, _, text = render_email(EmailTemplate.AI_ANALYSIS, "Jo", {
            "window_type": "casement",
            "material": "wood",
            "condition": "poor",
            "recommendations": ["Replace the sash"],
        })
        assert "Window type: casement" in text
        assert "- Replace the sash" in text


class TestEmailDispatcher:
    @pytest.mark.asyncio
    async def test_success_returns_id_and_headers(self):
        transport = FakeEmailTransport()
        result = await _dispatcher(transport).send(
            EmailTemplate.QUOTE, "jo@example.com", "Jo", QUOTE_PAYLOAD, headers={"X-Quote-ID": "quote_1"}
        )
        assert result.value == {"emailId": "email_1"}
        message = transport.sent[0]
        assert message.to == "jo@example.com"
        assert message.headers == {"X-Quote-ID": "quote_1"}

    @pytest.mark.asyncio
    async def test_missing_recipient(self):
        transport = FakeEmailTransport()
        result = await _dispatcher(transport).send(EmailTemplate.WELCOME, "", "Jo")
        assert result.error.kind == ErrorKind.VALIDATION
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_upstream_failure_is_typed(self):
        transport = FakeEmailTransport(error=UpstreamUnavailable("503"))
        result = await _dispatcher(transport).send(EmailTemplate.WELCOME, "jo@example.com", "Jo")
        assert result.error.kind == ErrorKind.UPSTREAM_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_typed(self):
        transport = FakeEmailTransport(error=RuntimeError("socket closed"))
        result = await _dispatcher(transport).send(EmailTemplate.WELCOME, "jo@example.com", "Jo")
        assert result.error.kind == ErrorKind.UPSTREAM_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_timeout(self):
        result = await _dispatcher(SlowTransport()).send(EmailTemplate.WELCOME, "jo@example.com", "Jo")
        assert result.error.kind == ErrorKind.UPSTREAM_TIMEOUT

    @pytest.mark.asyncio
    async def test_unconfigured_resend_transport(self):
        transport = ResendTransport(api_key=None)
        result = await _dispatcher(transport).send(EmailTemplate.WELCOME, "jo@example.com", "Jo")
        assert result.error.kind == ErrorKind.UPSTREAM_UNAVAILABLE
        assert _dispatcher(transport).health()["status"] == "degraded"


class TestAnalyticsSink:
    @pytest.mark.asyncio
    async def test_event_stored_with_context(self, persistence, store):
        sink = AnalyticsSink(persistence, clock=lambda: FIXED_NOW)
        ctx = RequestContext(session_id="wq_sess_1", source="widget", device_type="desktop")
        stored = await sink.record(AnalyticsEvent.QUOTE_CALCULATED, ctx, {"finalTotal": 500.0})
        assert stored
        row = records(store, Collections.ANALYTICS)[0]
        assert row["event"] == "quote_calculated"
        assert row["timestamp"] == "2025-03-15T10:00:00Z"
        assert row["sessionId"] == "wq_sess_1"
        assert row["deviceType"] == "desktop"

    @pytest.mark.asyncio
    async def test_store_failure_never_raises(self):
        sink = AnalyticsSink(PersistenceAdapter(BrokenStore()))
        assert await sink.record(AnalyticsEvent.EMAIL_SENT) is False

    @pytest.mark.asyncio
    async def test_invalid_event_discarded(self, persistence, store):
        sink = AnalyticsSink(persistence)
        assert await sink.record("x") is False
        assert records(store, Collections.ANALYTICS) == []

    @pytest.mark.asyncio
    async def test_record_error_keeps_stack(self, persistence):
        sink = AnalyticsSink(persistence)
        try:
            raise RuntimeError("boom")
        except RuntimeError as exc:
            assert await sink.record_error("calculate-quote", exc)
        rows = (await persistence.query(Collections.ANALYTICS)).value.items
        assert rows[0]["event"] == "internal_error"
        assert rows[0]["details"]["endpoint"] == "calculate-quote"
        assert "RuntimeError: boom" in rows[0]["details"]["stack"]
