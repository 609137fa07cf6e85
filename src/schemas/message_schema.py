"""Iframe message envelope and per-request context."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from src.schemas.base import WireModel


class IframeAction(str, Enum):
    """Closed vocabulary of actions the embedded widget may send."""

    ANALYZE_WINDOW = "analyze_window"
    CALCULATE_QUOTE = "calculate_quote"
    CALCULATE_PRICE = "calculate_price"
    GENERATE_QUOTE_EXPLANATION = "generate_quote_explanation"
    EMAIL_QUOTE = "email_quote"
    SAVE_CUSTOMER = "save_customer"
    LOAD_INITIAL_DATA = "load_initial_data"
    USER_ENGAGEMENT = "user_engagement"
    ERROR = "error"


class SuccessMessage(str, Enum):
    """Fixed set of human-readable success messages."""

    ANALYSIS_COMPLETE = "AI analysis completed successfully"
    QUOTE_CREATED = "Quote calculated successfully"
    CUSTOMER_SAVED = "Customer information saved successfully"
    EMAIL_SENT = "Email sent successfully"
    EXPLANATION_READY = "Quote explanation generated successfully"
    MEASUREMENTS_CHECKED = "Measurements validated successfully"
    DATA_LOADED = "Data loaded successfully"
    MESSAGE_PROCESSED = "Message processed successfully"


class IframeMessage(WireModel):
    """Inbound widget message, already checked for source and action."""
    source: str
    action: str
    data: dict[str, Any] = Field(default_factory=dict)
    session_id: Optional[str] = None
    mode: Optional[str] = None


@dataclass(frozen=True)
class RequestContext:
    """Correlation values threaded through one pipeline run."""
    session_id: str
    source: str = "website"
    mode: str = "standard"
    device_type: str = "unknown"
    user_agent: Optional[str] = None
