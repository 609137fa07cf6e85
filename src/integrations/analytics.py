"""
Best-effort analytics sink.

Every write is awaitable but can never fail the caller: validation
problems and store errors are logged and discarded.
"""

import logging
import traceback
from enum import Enum
from typing import Any, Callable, Optional

from src.schemas.message_schema import RequestContext
from src.storage.collections import Collections
from src.storage.persistence import PersistenceAdapter
from src.utils import iso_timestamp, utc_now
from src.validation.validators import validate_analytics_event

logger = logging.getLogger(__name__)


class AnalyticsEvent(str, Enum):
    """Event names written by the pipelines."""

    AI_ANALYSIS_COMPLETED = "ai_analysis_completed"
    VISION_TIMEOUT = "vision_timeout"
    VISION_FAILED = "vision_failed"
    QUOTE_CALCULATED = "quote_calculated"
    QUOTE_EXPLAINED = "quote_explanation_generated"
    CUSTOMER_INFO_UPDATED = "customer_info_updated"
    EMAIL_SENT = "email_sent"
    EMAIL_FAILED = "email_failed"
    MEASUREMENTS_VALIDATED = "measurements_validated"
    ORIGIN_REJECTED = "origin_rejected"
    USER_ENGAGEMENT = "user_engagement"
    CLIENT_ERROR = "client_error"
    INTERNAL_ERROR = "internal_error"


class AnalyticsSink:
    """Writes analytics events to the store without ever raising."""

    def __init__(self, persistence: PersistenceAdapter, clock: Callable = utc_now):
        self.persistence = persistence
        self.clock = clock

    async def record(
        self,
        event: Any,
        context: Optional[RequestContext] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Record one event. Returns whether it was stored."""
        name = event.value if isinstance(event, Enum) else str(event)
        try:
            payload: dict[str, Any] = {
                "event": name,
                "timestamp": iso_timestamp(self.clock()),
                "details": details,
            }
            if context is not None:
                payload.update(
                    sessionId=context.session_id,
                    source=context.source,
                    deviceType=context.device_type,
                )
            checked = validate_analytics_event(payload)
            if not checked.is_valid:
                logger.warning("Analytics event %s rejected: %s", name, "; ".join(checked.errors))
                return False
            result = await self.persistence.insert(Collections.ANALYTICS, checked.sanitized)
            if not result.ok:
                logger.warning("Analytics event %s discarded: %s", name, result.error.message)
                return False
            return True
        except Exception as exc:
            logger.warning("Analytics event %s discarded: %s", name, exc)
            return False

    async def record_error(
        self,
        endpoint: str,
        error: BaseException,
        context: Optional[RequestContext] = None,
    ) -> bool:
        """Record an internal error with its stack."""
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return await self.record(
            AnalyticsEvent.INTERNAL_ERROR,
            context,
            {"endpoint": endpoint, "error": str(error), "stack": stack[-4000:]},
        )
