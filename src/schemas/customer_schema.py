"""Customer data models and lead workflow enums."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from src.schemas.base import WireModel


class LeadStatus(str, Enum):
    """Sales workflow stage of a customer."""

    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    QUOTED = "quoted"
    CONVERTED = "converted"
    LOST = "lost"


class LeadPriority(str, Enum):
    """Derived scheduling label; never part of pricing."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CustomerInfo(WireModel):
    """Validated customer contact details."""
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None


class LeadProfile(WireModel):
    """Workflow values derived from a quote and its engagement signals."""
    priority: LeadPriority = LeadPriority.LOW
    follow_up_date: datetime
    tags: list[str] = Field(default_factory=list)
    completeness: int = 0
