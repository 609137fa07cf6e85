from src.validation.validators import (
    ValidationResult,
    validate_ai_measurement,
    validate_analytics_event,
    validate_customer,
    validate_quote_submission,
    validate_window_spec,
)

__all__ = [
    "ValidationResult", "validate_ai_measurement", "validate_analytics_event",
    "validate_customer", "validate_quote_submission", "validate_window_spec",
]
