"""
Error kinds and result values shared by every component boundary.

Components never let exceptions escape their public methods: they return
a ``Result`` carrying either a value or a ``ServiceError``. The pipelines
and the HTTP layer map error kinds to envelopes and status codes.

Usage:
    result = await engine.calculate_quote(specs)
    if not result.ok:
        return envelope_for_error(result.error)
    quote = result.value
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Closed set of error categories surfaced to callers."""

    VALIDATION = "validation_error"
    ORIGIN = "origin_error"
    MISSING_FIELD = "missing_field"
    NOT_FOUND = "not_found"
    UPSTREAM_TIMEOUT = "upstream_timeout"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    RATE_LIMITED = "rate_limited"
    INVALID_IMAGE = "invalid_image"
    MALFORMED_RESPONSE = "malformed_response"
    PRICING = "pricing_error"
    INTERNAL = "internal_error"


_CLIENT_ERRORS = {ErrorKind.VALIDATION, ErrorKind.ORIGIN, ErrorKind.MISSING_FIELD}


def status_code_for(kind: ErrorKind) -> int:
    """HTTP status for an error that reaches the boundary."""
    if kind in _CLIENT_ERRORS:
        return 400
    return 500


@dataclass(frozen=True)
class ServiceError:
    """A typed failure with a human-readable message."""

    kind: ErrorKind
    message: str
    details: list[str] = field(default_factory=list)

    @property
    def status_code(self) -> int:
        return status_code_for(self.kind)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either ``ok`` with a value or not ``ok`` with an error."""

    ok: bool
    value: Optional[T] = None
    error: Optional[ServiceError] = None

    @classmethod
    def success(cls, value: Any = None) -> "Result[Any]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(
        cls, kind: ErrorKind, message: str, details: Optional[list[str]] = None
    ) -> "Result[Any]":
        return cls(ok=False, error=ServiceError(kind, message, details or []))


class PricingError(Exception):
    """Raised inside the pricing engine when a line cannot be priced."""

    def __init__(self, line_index: int, reason: str) -> None:
        self.line_index = line_index
        self.reason = reason
        super().__init__(f"Line {line_index}: {reason}")


class UpstreamError(Exception):
    """Base for failures of an external collaborator."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class UpstreamTimeout(UpstreamError):
    kind = ErrorKind.UPSTREAM_TIMEOUT


class UpstreamUnavailable(UpstreamError):
    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class UpstreamRateLimited(UpstreamError):
    kind = ErrorKind.RATE_LIMITED
