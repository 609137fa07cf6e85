"""Shared utilities used across the window quote service."""

import random
import re
import string
import time
from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Optional

SESSION_PREFIX = "wq_sess"

_BASE36 = string.digits + string.ascii_lowercase
_CENT = Decimal("0.01")


def normalize_phone(value: str) -> str:
    """Normalize a US phone number to its 10 digits.

    Everything except digits is stripped and a leading country code 1 is
    dropped. The result is not length-checked; validators do that.

    Examples:
        >>> normalize_phone("(651) 555-0142")
        '6515550142'
        >>> normalize_phone("+1 651.555.0142")
        '6515550142'
    """
    digits = re.sub(r"[^\d]", "", value.strip())
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:]
    return digits


def format_phone(value: str) -> str:
    """Render a phone number as (XXX) XXX-XXXX when it has 10 digits.

    Examples:
        >>> format_phone("6515550142")
        '(651) 555-0142'
        >>> format_phone("12345")
        '12345'
    """
    digits = normalize_phone(value)
    if len(digits) != 10:
        return value
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


def normalize_email(value: str) -> str:
    """Trim and lowercase an email address; emails are keys, so case never matters."""
    return value.strip().lower()


def normalize_key(value: str) -> str:
    """Turn a display name into a catalog key.

    Examples:
        >>> normalize_key("Double Hung")
        'double-hung'
        >>> normalize_key(" Aluminum_Clad ")
        'aluminum-clad'
    """
    return re.sub(r"[\s_]+", "-", value.strip().lower())


def round2(value: float) -> float:
    """Round to cents using banker's rounding on the shortest decimal repr."""
    return float(Decimal(repr(value)).quantize(_CENT, rounding=ROUND_HALF_EVEN))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with a trailing Z."""
    moment = moment or utc_now()
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_iso_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing Z. Raises ValueError."""
    return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))


def generate_unique_id(prefix: str) -> str:
    """Build an id of the form ``<prefix>_<ms-epoch>_<8 base36 chars>``."""
    suffix = "".join(random.choices(_BASE36, k=8))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def generate_session_id() -> str:
    return generate_unique_id(SESSION_PREFIX)
