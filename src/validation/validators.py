"""
Typed validators for everything that enters the service.

Each validator returns a ``ValidationResult`` and never raises: either
``is_valid`` with a sanitized value, or not valid with a list of
human-readable errors. Unknown fields are dropped.
"""

import functools
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Optional

from src.config import settings
from src.errors import ErrorKind, Result
from src.schemas.customer_schema import CustomerInfo
from src.schemas.window_schema import (
    DEFAULT_BRAND,
    DEFAULT_MATERIAL,
    DEFAULT_WINDOW_TYPE,
    MAX_DIMENSION_IN,
    MAX_QUANTITY,
    MIN_DIMENSION_IN,
    MIN_QUANTITY,
    Material,
    WindowOption,
    WindowSpec,
    WindowType,
)
from src.utils import normalize_email, normalize_key, normalize_phone, parse_iso_timestamp, utc_now

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Length limits
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
MAX_ADDRESS_LENGTH = 500
MAX_NOTES_LENGTH = 2000
PHONE_DIGITS = 10
MIN_SESSION_NAME_LENGTH = 10
MAX_SESSION_NAME_LENGTH = 50
MIN_EVENT_LENGTH = 3
MAX_EVENT_LENGTH = 50
MAX_QUOTE_WINDOWS = 20

_CUSTOMER_ALIASES = {
    "name": ("customerName", "name"),
    "email": ("customerEmail", "email"),
    "phone": ("customerPhone", "phone"),
    "address": ("projectAddress", "address"),
    "notes": ("projectNotes", "notes"),
}


@dataclass
class ValidationResult:
    """Outcome of one validator."""

    is_valid: bool
    sanitized: Any = None
    errors: list[str] = field(default_factory=list)

    def to_result(self, what: str = "Input") -> Result[Any]:
        if self.is_valid:
            return Result.success(self.sanitized)
        return Result.failure(ErrorKind.VALIDATION, f"{what} failed validation", self.errors)


def _never_raises(func: Callable[..., ValidationResult]) -> Callable[..., ValidationResult]:
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> ValidationResult:
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            logger.warning("Validator %s crashed: %s", func.__name__, exc)
            return ValidationResult(False, errors=[f"Validation failed: {exc}"])

    return wrapper


def _first(data: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(value: Any) -> Optional[float]:
    """Finite float from a number or numeric string, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _check_range(
    errors: list[str], label: str, value: Any, low: float, high: float, required: bool = True
) -> Optional[float]:
    if value is None:
        if required:
            errors.append(f"{label} is required")
        return None
    number = _number(value)
    if number is None:
        errors.append(f"{label} must be a finite number")
        return None
    if not low <= number <= high:
        errors.append(f"{label} must be between {low:g} and {high:g}")
        return None
    return number


def _check_length(
    errors: list[str], label: str, value: Optional[str], high: int, low: int = 0
) -> None:
    if value is not None and not low <= len(value) <= high:
        if low:
            errors.append(f"{label} must be {low}-{high} characters")
        else:
            errors.append(f"{label} must be at most {high} characters")


@_never_raises
def validate_customer(data: Mapping[str, Any]) -> ValidationResult:
    """Name and email are required; phone must be a 10-digit US number."""
    if not isinstance(data, Mapping):
        return ValidationResult(False, errors=["Customer data must be an object"])
    errors: list[str] = []
    fields = {key: _text(_first(data, aliases)) for key, aliases in _CUSTOMER_ALIASES.items()}

    name = fields["name"]
    if name is None:
        errors.append("Customer name is required")
    else:
        _check_length(errors, "Customer name", name, MAX_NAME_LENGTH, MIN_NAME_LENGTH)

    email = fields["email"]
    if email is None:
        errors.append("Customer email is required")
    else:
        email = normalize_email(email)
        if not EMAIL_PATTERN.match(email):
            errors.append("Customer email is not a valid address")

    phone = fields["phone"]
    if phone is not None:
        phone = normalize_phone(phone)
        if len(phone) != PHONE_DIGITS:
            errors.append(f"Phone number must have {PHONE_DIGITS} digits")

    _check_length(errors, "Address", fields["address"], MAX_ADDRESS_LENGTH)
    _check_length(errors, "Notes", fields["notes"], MAX_NOTES_LENGTH)

    if errors:
        return ValidationResult(False, errors=errors)
    return ValidationResult(True, sanitized=CustomerInfo(
        name=name,
        email=email,
        phone=phone,
        address=fields["address"],
        notes=fields["notes"],
    ))


def _enum_or_default(enum_cls: Any, value: Any, default: Any) -> Any:
    if value is None:
        return default
    try:
        return enum_cls(normalize_key(str(value)))
    except ValueError:
        logger.debug("Unknown %s %r, using %s", enum_cls.__name__, value, default.value)
        return default


@_never_raises
def validate_window_spec(data: Mapping[str, Any]) -> ValidationResult:
    """Dimensions and quantity are checked; type and material fall back to defaults."""
    if not isinstance(data, Mapping):
        return ValidationResult(False, errors=["Window data must be an object"])
    errors: list[str] = []

    width = _check_range(errors, "Width", data.get("width"), MIN_DIMENSION_IN, MAX_DIMENSION_IN)
    height = _check_range(errors, "Height", data.get("height"), MIN_DIMENSION_IN, MAX_DIMENSION_IN)

    quantity = data.get("quantity")
    quantity_number = _number(quantity)
    if quantity is None:
        errors.append("Quantity is required")
    elif quantity_number is None or not quantity_number.is_integer():
        errors.append("Quantity must be a whole number")
    elif not MIN_QUANTITY <= quantity_number <= MAX_QUANTITY:
        errors.append(f"Quantity must be between {MIN_QUANTITY} and {MAX_QUANTITY}")

    raw_options = data.get("options") or []
    if isinstance(raw_options, str):
        raw_options = [raw_options]
    options: list[WindowOption] = []
    for raw in raw_options:
        try:
            option = WindowOption(normalize_key(str(raw)))
        except ValueError:
            errors.append(f"Unknown option: {raw}")
            continue
        if option not in options:
            options.append(option)

    notes = _text(data.get("notes"))
    _check_length(errors, "Notes", notes, MAX_NOTES_LENGTH)

    if errors:
        return ValidationResult(False, errors=errors)
    return ValidationResult(True, sanitized=WindowSpec(
        width=width,
        height=height,
        quantity=int(quantity_number),
        window_type=_enum_or_default(WindowType, data.get("windowType"), DEFAULT_WINDOW_TYPE),
        material=_enum_or_default(Material, data.get("material"), DEFAULT_MATERIAL),
        brand=_text(data.get("brand")) or DEFAULT_BRAND,
        options=tuple(options),
        notes=notes,
    ))


@_never_raises
def validate_ai_measurement(data: Mapping[str, Any]) -> ValidationResult:
    """A named measurement session with plausible dimensions."""
    if not isinstance(data, Mapping):
        return ValidationResult(False, errors=["Measurement data must be an object"])
    errors: list[str] = []

    session_name = _text(data.get("sessionName"))
    if session_name is None:
        errors.append("Session name is required")
    else:
        _check_length(
            errors, "Session name", session_name, MAX_SESSION_NAME_LENGTH, MIN_SESSION_NAME_LENGTH
        )
    width = _check_range(
        errors, "Measured width", data.get("measuredWidth"), MIN_DIMENSION_IN, MAX_DIMENSION_IN
    )
    height = _check_range(
        errors, "Measured height", data.get("measuredHeight"), MIN_DIMENSION_IN, MAX_DIMENSION_IN
    )
    confidence = _check_range(
        errors, "Confidence", data.get("confidence"), 0, 100, required=False
    )

    if errors:
        return ValidationResult(False, errors=errors)
    sanitized = {
        "sessionName": session_name,
        "measuredWidth": width,
        "measuredHeight": height,
    }
    if confidence is not None:
        sanitized["confidence"] = confidence
    return ValidationResult(True, sanitized=sanitized)


@_never_raises
def validate_quote_submission(
    data: Mapping[str, Any],
    valid_days: int = settings.business.quote_valid_days,
    now: Optional[datetime] = None,
) -> ValidationResult:
    """A customer id plus 1-20 valid windows; stamps ``validUntil``."""
    if not isinstance(data, Mapping):
        return ValidationResult(False, errors=["Quote data must be an object"])
    errors: list[str] = []

    customer_id = _text(data.get("customerId"))
    if customer_id is None:
        errors.append("Customer id is required")

    windows = data.get("windowData")
    specs: list[WindowSpec] = []
    if not isinstance(windows, list) or not windows:
        errors.append("At least one window is required")
    elif len(windows) > MAX_QUOTE_WINDOWS:
        errors.append(f"A quote may contain at most {MAX_QUOTE_WINDOWS} windows")
    else:
        for index, window in enumerate(windows):
            if isinstance(window, WindowSpec):
                specs.append(window)
                continue
            checked = validate_window_spec(window)
            if checked.is_valid:
                specs.append(checked.sanitized)
            else:
                errors.extend(f"Window {index + 1}: {error}" for error in checked.errors)

    if errors:
        return ValidationResult(False, errors=errors)
    return ValidationResult(True, sanitized={
        "customerId": customer_id,
        "windowData": specs,
        "validUntil": (now or utc_now()) + timedelta(days=valid_days),
    })


@_never_raises
def validate_analytics_event(data: Mapping[str, Any]) -> ValidationResult:
    """An event name of 3-50 characters and an ISO-8601 timestamp."""
    if not isinstance(data, Mapping):
        return ValidationResult(False, errors=["Analytics event must be an object"])
    errors: list[str] = []

    event = _text(data.get("event"))
    if event is None:
        errors.append("Event name is required")
    else:
        _check_length(errors, "Event name", event, MAX_EVENT_LENGTH, MIN_EVENT_LENGTH)

    timestamp = data.get("timestamp")
    if not isinstance(timestamp, str):
        errors.append("Timestamp must be an ISO-8601 string")
    else:
        try:
            parse_iso_timestamp(timestamp)
        except ValueError:
            errors.append("Timestamp must be an ISO-8601 string")

    if errors:
        return ValidationResult(False, errors=errors)
    sanitized = {"event": event, "timestamp": timestamp}
    for key in ("sessionId", "source", "deviceType", "details"):
        if data.get(key) is not None:
            sanitized[key] = data[key]
    return ValidationResult(True, sanitized=sanitized)
