"""Vision analysis models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import Field

from src.schemas.base import WireModel

UNKNOWN = "unknown"


class WindowAnalysis(WireModel):
    """Structured answer parsed from the vision LLM."""
    window_type: str = UNKNOWN
    material: str = UNKNOWN
    condition: str = UNKNOWN
    estimated_width: Optional[float] = Field(default=None, gt=0)
    estimated_height: Optional[float] = Field(default=None, gt=0)
    confidence: Optional[float] = Field(default=None, ge=0, le=100)
    recommendations: list[str] = Field(default_factory=list)


class AnalysisResult(WireModel):
    """One persisted vision call."""
    analysis_id: str
    session_id: str
    image_digest: str
    analysis: WindowAnalysis
    quality_score: int
    source: str
    device_type: str
    timestamp: datetime


class MeasurementCheck(WireModel):
    """Plausibility verdict for a pair of measurements."""
    is_valid: bool
    confidence: float
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    quality_score: int = 0
    degraded: bool = False


@dataclass(frozen=True)
class AnalysisContext:
    """Who asked for an analysis and from where."""
    session_id: str
    source: str = "website"
    device_type: str = "unknown"
    notes: Optional[str] = None
