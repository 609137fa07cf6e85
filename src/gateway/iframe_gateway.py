"""
Iframe message gateway.

Single entry point for messages posted by the embedded widget. Checks the
caller's origin, validates the ``{source, action, data}`` envelope, then
dispatches through a flat action table to the orchestrator. Also builds
the response envelope used by every HTTP endpoint:

    {success, data?, error?, errorKind?, details?, message?, endpoint, timestamp}
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional
from urllib.parse import urlsplit

from pydantic_core import to_jsonable_python

from src.config import GatewayConfig, settings
from src.errors import ErrorKind, Result, ServiceError
from src.integrations.analytics import AnalyticsEvent, AnalyticsSink
from src.logging_context import get_session_logger
from src.orchestrator.quote_orchestrator import QuoteOrchestrator
from src.schemas.message_schema import (
    IframeAction,
    IframeMessage,
    RequestContext,
    SuccessMessage,
)
from src.utils import iso_timestamp, utc_now

logger = get_session_logger(__name__)

ENDPOINT = "iframe-message"

Handler = Callable[[Mapping[str, Any], RequestContext], Awaitable[Result[Any]]]


@dataclass
class GatewayResponse:
    """An envelope plus the HTTP status it should be sent with."""

    status_code: int
    body: dict[str, Any]


def success_envelope(
    endpoint: str, data: Any = None, message: Optional[str] = None
) -> GatewayResponse:
    body: dict[str, Any] = {
        "success": True,
        "data": to_jsonable_python(data),
        "endpoint": endpoint,
        "timestamp": iso_timestamp(utc_now()),
    }
    if message:
        body["message"] = message
    return GatewayResponse(200, body)


def error_envelope(endpoint: str, error: ServiceError) -> GatewayResponse:
    body: dict[str, Any] = {
        "success": False,
        "error": error.message,
        "errorKind": error.kind.value,
        "endpoint": endpoint,
        "timestamp": iso_timestamp(utc_now()),
    }
    if error.details:
        body["details"] = list(error.details)
    return GatewayResponse(error.status_code, body)


def envelope_for(
    endpoint: str, result: Result[Any], message: Optional[str] = None
) -> GatewayResponse:
    """Map a pipeline result to its envelope.

    A ``not_found`` error is not a failure at the boundary: it becomes a
    success with ``data: null``. Pricing and internal errors are 500.
    """
    if result.ok:
        return success_envelope(endpoint, result.value, message)
    if result.error.kind == ErrorKind.NOT_FOUND:
        return success_envelope(endpoint, None, message)
    return error_envelope(endpoint, result.error)


def origin_of(value: Optional[str]) -> Optional[str]:
    """Reduce an Origin or Referer header to ``scheme://host[:port]``."""
    if not value or not value.strip():
        return None
    parts = urlsplit(value.strip())
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


def is_allowed_origin(origin: Optional[str], config: GatewayConfig = settings.gateway) -> bool:
    """Exact allow-list match, or an https host under a wildcard suffix.

    Examples:
        >>> is_allowed_origin("https://goodfaithexteriors.com")
        True
        >>> is_allowed_origin("https://editor.wix.com")
        True
        >>> is_allowed_origin("https://evil.example")
        False
    """
    normalized = origin_of(origin)
    if normalized is None:
        return False
    if normalized in {o.rstrip("/").lower() for o in config.allowed_origins}:
        return True
    parts = urlsplit(normalized)
    host = parts.hostname or ""
    return parts.scheme == "https" and any(
        host.endswith(suffix.lower()) for suffix in config.wildcard_suffixes
    )


class IframeGateway:
    """Origin check, envelope validation and action dispatch."""

    def __init__(
        self,
        orchestrator: QuoteOrchestrator,
        analytics: AnalyticsSink,
        config: GatewayConfig = settings.gateway,
    ):
        self.orchestrator = orchestrator
        self.analytics = analytics
        self.config = config
        self._handlers: dict[IframeAction, Handler] = {
            IframeAction.ANALYZE_WINDOW: orchestrator.analyze_window,
            IframeAction.CALCULATE_QUOTE: orchestrator.calculate_quote,
            IframeAction.CALCULATE_PRICE: orchestrator.calculate_quote,
            IframeAction.GENERATE_QUOTE_EXPLANATION: orchestrator.explain_quote,
            IframeAction.EMAIL_QUOTE: orchestrator.email_quote,
            IframeAction.SAVE_CUSTOMER: orchestrator.save_customer,
            IframeAction.LOAD_INITIAL_DATA: self._load_initial_data,
            IframeAction.USER_ENGAGEMENT: orchestrator.record_engagement,
            IframeAction.ERROR: orchestrator.record_client_error,
        }
        self._messages: dict[IframeAction, SuccessMessage] = {
            IframeAction.ANALYZE_WINDOW: SuccessMessage.ANALYSIS_COMPLETE,
            IframeAction.CALCULATE_QUOTE: SuccessMessage.QUOTE_CREATED,
            IframeAction.CALCULATE_PRICE: SuccessMessage.QUOTE_CREATED,
            IframeAction.GENERATE_QUOTE_EXPLANATION: SuccessMessage.EXPLANATION_READY,
            IframeAction.SAVE_CUSTOMER: SuccessMessage.CUSTOMER_SAVED,
            IframeAction.EMAIL_QUOTE: SuccessMessage.EMAIL_SENT,
            IframeAction.LOAD_INITIAL_DATA: SuccessMessage.DATA_LOADED,
        }

    async def _load_initial_data(
        self, data: Mapping[str, Any], context: RequestContext
    ) -> Result[dict[str, Any]]:
        return await self.orchestrator.load_initial_data()

    async def check_origin(
        self, origin: Optional[str], referer: Optional[str] = None
    ) -> Optional[GatewayResponse]:
        """Return a rejection envelope, or None when the caller is allowed."""
        candidate = origin or referer
        if is_allowed_origin(candidate, self.config):
            return None
        logger.warning("Rejected message from origin %s", candidate or "<none>")
        await self.analytics.record(
            AnalyticsEvent.ORIGIN_REJECTED, details={"origin": candidate, "endpoint": ENDPOINT}
        )
        return error_envelope(
            ENDPOINT, ServiceError(ErrorKind.ORIGIN, "Invalid origin for iframe communication")
        )

    @staticmethod
    def parse_envelope(body: Any) -> Result[IframeMessage]:
        if not isinstance(body, Mapping):
            return Result.failure(ErrorKind.VALIDATION, "Message body must be a JSON object")
        missing = [
            name for name in ("source", "action")
            if not isinstance(body.get(name), str) or not body[name].strip()
        ]
        if missing:
            return Result.failure(
                ErrorKind.MISSING_FIELD,
                f"Missing required fields: {', '.join(missing)}",
                [f"{name} is required" for name in missing],
            )
        data = body.get("data") or {}
        if not isinstance(data, Mapping):
            return Result.failure(ErrorKind.VALIDATION, "data must be an object")
        return Result.success(IframeMessage(
            source=body["source"].strip(),
            action=body["action"].strip(),
            data=dict(data),
            session_id=body.get("sessionId") or data.get("sessionId"),
            mode=body.get("mode") or data.get("mode"),
        ))

    async def handle_message(
        self,
        body: Any,
        origin: Optional[str] = None,
        referer: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> GatewayResponse:
        rejection = await self.check_origin(origin, referer)
        if rejection is not None:
            return rejection

        parsed = self.parse_envelope(body)
        if not parsed.ok:
            return error_envelope(ENDPOINT, parsed.error)
        message = parsed.value

        if message.source not in self.config.allowed_sources:
            logger.warning("Unknown iframe source: %s", message.source)

        try:
            action = IframeAction(message.action)
        except ValueError:
            logger.warning("Unhandled iframe action: %s", message.action)
            return success_envelope(ENDPOINT, {
                "processed": False,
                "reason": f"Action {message.action} acknowledged but not handled",
            })

        context = self.orchestrator.begin(
            message.session_id, message.source, message.mode, user_agent
        )
        logger.info("Processing iframe message: %s from %s", action.value, message.source)
        result = await self._handlers[action](message.data, context)
        return envelope_for(
            ENDPOINT,
            result,
            self._messages.get(action, SuccessMessage.MESSAGE_PROCESSED).value,
        )
