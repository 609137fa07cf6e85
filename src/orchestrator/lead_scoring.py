"""
Lead workflow derivations: priority, follow-up date, tags, completeness.

Priority is never set by a caller; it is recomputed from the quote total
and engagement signals on every customer write.
"""

from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Optional, Sequence

from src.config import LeadConfig, settings
from src.schemas.customer_schema import LeadPriority
from src.schemas.message_schema import RequestContext
from src.schemas.window_schema import WindowSpec
from src.utils import utc_now

FOLLOW_UP_DELAYS: dict[LeadPriority, timedelta] = {
    LeadPriority.HIGH: timedelta(hours=2),
    LeadPriority.MEDIUM: timedelta(hours=24),
    LeadPriority.LOW: timedelta(hours=72),
}

COMPLETENESS_FIELDS = ("name", "email", "phone", "address")

_MOBILE_HINTS = ("mobile", "ios", "android", "phone", "iphone")
_TABLET_HINTS = ("tablet", "ipad")
_MOBILE_SOURCES = ("popup",)

# Tag families recomputed on every write; anything else is kept.
_VALUE_TAGS = ("high-value", "medium-value", "low-value")


def detect_device_type(source: Optional[str], user_agent: Optional[str] = None) -> str:
    """Classify the caller as mobile, tablet, desktop or unknown.

    Examples:
        >>> detect_device_type("mobile")
        'mobile'
        >>> detect_device_type("website", "Mozilla/5.0 (iPad; CPU OS 17_0)")
        'tablet'
        >>> detect_device_type(None)
        'unknown'
    """
    if not source and not user_agent:
        return "unknown"
    source_text = (source or "").lower()
    combined = f"{source_text} {(user_agent or '').lower()}"
    if source_text in _MOBILE_SOURCES or any(hint in combined for hint in _MOBILE_HINTS):
        return "mobile"
    if any(hint in combined for hint in _TABLET_HINTS):
        return "tablet"
    return "desktop"


def derive_lead_priority(
    total: float,
    mode: Optional[str] = None,
    has_ai_analysis: bool = False,
    leads: LeadConfig = settings.leads,
) -> LeadPriority:
    if total >= leads.high_threshold:
        return LeadPriority.HIGH
    if total >= leads.medium_threshold:
        return LeadPriority.MEDIUM
    if mode == "mobile" or has_ai_analysis:
        return LeadPriority.MEDIUM
    return LeadPriority.LOW


def follow_up_date(
    priority: LeadPriority, engaged: bool = False, now: Optional[datetime] = None
) -> datetime:
    now = now or utc_now()
    if engaged:
        return now + FOLLOW_UP_DELAYS[LeadPriority.HIGH]
    return now + FOLLOW_UP_DELAYS[priority]


def value_tag(total: float, leads: LeadConfig = settings.leads) -> str:
    if total >= leads.high_threshold:
        return "high-value"
    if total >= leads.medium_threshold:
        return "medium-value"
    return "low-value"


def generate_tags(
    context: RequestContext,
    total: float,
    specs: Sequence[WindowSpec] = (),
    has_ai_analysis: bool = False,
    leads: LeadConfig = settings.leads,
) -> list[str]:
    """Build lead tags in a stable order with no duplicates."""
    tags = [
        f"source:{context.source}",
        f"device:{context.device_type}",
        f"mode:{context.mode}",
    ]
    if has_ai_analysis:
        tags.append("ai-analyzed")
    tags.append(value_tag(total, leads))
    for spec in specs:
        tags.append(f"window-type:{spec.window_type.value}")
    for spec in specs:
        tags.append(f"material:{spec.material.value}")
    if specs:
        tags.append(f"windows:{sum(spec.quantity for spec in specs)}")
    return list(dict.fromkeys(tags))


def _family(tag: str) -> str:
    if tag in _VALUE_TAGS:
        return "value"
    return tag.split(":", 1)[0] if ":" in tag else tag


def merge_tags(existing: Optional[Iterable[str]], fresh: Sequence[str]) -> list[str]:
    """Fresh tags replace whole families; untouched existing families survive.

    Examples:
        >>> merge_tags(["source:website", "material:wood"], ["source:mobile", "low-value"])
        ['material:wood', 'source:mobile', 'low-value']
    """
    if not existing or isinstance(existing, str):
        return list(dict.fromkeys(fresh))
    replaced = {_family(tag) for tag in fresh}
    kept = [tag for tag in existing if _family(str(tag)) not in replaced]
    return list(dict.fromkeys([*kept, *fresh]))


def customer_completeness(customer: Mapping[str, Any]) -> int:
    """Percentage of the four contact fields that are filled in."""
    filled = sum(1 for name in COMPLETENESS_FIELDS if customer.get(name))
    return round(filled / len(COMPLETENESS_FIELDS) * 100)
