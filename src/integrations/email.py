"""
Named-template email dispatch.

Templates are rendered with Jinja2 and handed to an ``EmailTransport``;
production uses Resend. ``EmailDispatcher.send`` never raises: it returns
``Result`` with ``{"emailId": ...}`` or a typed upstream error.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

import resend
from jinja2 import Environment

from src.config import BusinessConfig, TimeoutConfig, settings
from src.errors import ErrorKind, Result, UpstreamError, UpstreamUnavailable
from src.integrations import email_templates as tpl
from src.utils import format_phone

logger = logging.getLogger(__name__)


class EmailTemplate(str, Enum):
    """Customer emails the service can send."""

    QUOTE = "quote_email"
    AI_ANALYSIS = "ai_analysis_email"
    APPOINTMENT_CONFIRMATION = "appointment_confirmation"
    FOLLOW_UP = "follow_up_email"
    WELCOME = "welcome_email"


SUBJECTS: dict[EmailTemplate, str] = {
    EmailTemplate.QUOTE: "Your Custom Window Quote - {name}",
    EmailTemplate.AI_ANALYSIS: "Your Window Analysis is Complete, {name}",
    EmailTemplate.APPOINTMENT_CONFIRMATION: "Appointment Confirmed - {name}",
    EmailTemplate.FOLLOW_UP: "Following Up on Your Window Project, {name}",
    EmailTemplate.WELCOME: "Welcome to {company}, {name}!",
}

_SOURCES: dict[EmailTemplate, tuple[str, str]] = {
    EmailTemplate.QUOTE: (tpl.QUOTE_HTML, tpl.QUOTE_TEXT),
    EmailTemplate.AI_ANALYSIS: (tpl.ANALYSIS_HTML, tpl.ANALYSIS_TEXT),
    EmailTemplate.APPOINTMENT_CONFIRMATION: (tpl.APPOINTMENT_HTML, tpl.APPOINTMENT_TEXT),
    EmailTemplate.FOLLOW_UP: (tpl.FOLLOW_UP_HTML, tpl.FOLLOW_UP_TEXT),
    EmailTemplate.WELCOME: (tpl.WELCOME_HTML, tpl.WELCOME_TEXT),
}

_html_env = Environment(autoescape=True)
_text_env = Environment(autoescape=False)


@dataclass
class EmailMessage:
    """A rendered email ready for the transport."""

    to: str
    subject: str
    html: str
    text: str
    headers: dict[str, str] = field(default_factory=dict)


def render_email(
    template: EmailTemplate,
    customer_name: str,
    payload: dict[str, Any],
    business: BusinessConfig = settings.business,
) -> tuple[str, str, str]:
    """Return (subject, html, text) for one template."""
    context = {
        **payload,
        "customer_name": customer_name,
        "company_name": business.name,
        "company_phone": format_phone(business.phone),
        "company_website": business.website,
        "valid_days": payload.get("valid_days", business.quote_valid_days),
    }
    html_source, text_source = _SOURCES[template]
    subject = SUBJECTS[template].format(name=customer_name or "Valued Customer", company=business.name)
    return (
        subject,
        _html_env.from_string(html_source).render(**context),
        _text_env.from_string(text_source).render(**context),
    )


class EmailTransport(Protocol):
    """Delivers a rendered message and returns the provider's id."""

    configured: bool

    async def send(self, message: EmailMessage) -> str: ...


class ResendTransport:
    """Sends through the Resend API."""

    def __init__(self, api_key: Optional[str], sender: str = settings.business.sender_address):
        self.sender = sender
        self.configured = bool(api_key)
        if api_key:
            resend.api_key = api_key

    async def send(self, message: EmailMessage) -> str:
        if not self.configured:
            raise UpstreamUnavailable("Email API key is not configured")
        params = {
            "from": self.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
            "headers": message.headers,
        }
        try:
            response = await asyncio.to_thread(resend.Emails.send, params)
        except Exception as exc:
            raise UpstreamUnavailable(str(exc)) from exc
        return response["id"]


class EmailDispatcher:
    """Renders named templates and dispatches them with a timeout."""

    def __init__(
        self,
        transport: EmailTransport,
        business: BusinessConfig = settings.business,
        timeouts: TimeoutConfig = settings.timeouts,
    ):
        self.transport = transport
        self.business = business
        self.timeout_sec = timeouts.email_sec

    async def send(
        self,
        template: EmailTemplate,
        customer_email: str,
        customer_name: str,
        payload: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Result[dict[str, str]]:
        if not customer_email:
            return Result.failure(ErrorKind.VALIDATION, "Customer email is required")
        try:
            subject, html, text = render_email(template, customer_name, payload or {}, self.business)
        except Exception as exc:
            logger.error("Rendering %s failed: %s", template.value, exc)
            return Result.failure(ErrorKind.INTERNAL, f"Could not render {template.value}: {exc}")

        message = EmailMessage(
            to=customer_email, subject=subject, html=html, text=text, headers=headers or {}
        )
        try:
            email_id = await asyncio.wait_for(self.transport.send(message), timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("Email %s to %s timed out", template.value, customer_email)
            return Result.failure(ErrorKind.UPSTREAM_TIMEOUT, "Email service timed out")
        except UpstreamError as exc:
            logger.warning("Email %s to %s failed: %s", template.value, customer_email, exc)
            return Result.failure(exc.kind, f"Email service error: {exc}")
        except Exception as exc:
            logger.warning("Email %s to %s failed: %s", template.value, customer_email, exc)
            return Result.failure(ErrorKind.UPSTREAM_UNAVAILABLE, f"Email service error: {exc}")

        logger.info("Email %s sent to %s: %s", template.value, customer_email, email_id)
        return Result.success({"emailId": email_id})

    def health(self) -> dict[str, Any]:
        configured = bool(getattr(self.transport, "configured", False))
        return {
            "status": "healthy" if configured else "degraded",
            "configured": configured,
            "templates": [template.value for template in EmailTemplate],
        }
