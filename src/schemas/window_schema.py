"""Window line-item models and the enumerations they draw from."""

from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, Field, field_validator

from src.schemas.base import WireModel
from src.utils import normalize_key

MIN_DIMENSION_IN = 6.0
MAX_DIMENSION_IN = 144.0
MIN_QUANTITY = 1
MAX_QUANTITY = 50


class WindowType(str, Enum):
    """Window operating styles the catalog prices."""

    SINGLE_HUNG = "single-hung"
    DOUBLE_HUNG = "double-hung"
    CASEMENT = "casement"
    AWNING = "awning"
    SLIDING = "sliding"
    PICTURE = "picture"
    BAY = "bay"
    BOW = "bow"
    GARDEN = "garden"


class Material(str, Enum):
    """Frame materials."""

    VINYL = "vinyl"
    WOOD = "wood"
    FIBERGLASS = "fiberglass"
    ALUMINUM_CLAD = "aluminum-clad"
    CELLULAR_PVC = "cellular-pvc"
    COMPOSITE = "composite"


class WindowOption(str, Enum):
    """Add-on options with a flat per-window price."""

    LOW_E_COATING = "low-e-coating"
    ENHANCED_SECURITY_FEATURES = "enhanced-security-features"
    CUSTOM_GRIDS = "custom-grids"
    CUSTOM_COLORS = "custom-colors"
    ARGON_GAS_FILL = "argon-gas-fill"
    TRIPLE_PANE_GLASS = "triple-pane-glass"
    GRIDS_BETWEEN_GLASS = "grids-between-glass"
    ENERGY_STAR_RATING = "energy-star-rating"
    NOISE_REDUCTION_PACKAGE = "noise-reduction-package"
    HURRICANE_IMPACT_RATING = "hurricane-impact-rating"
    CUSTOM_HARDWARE = "custom-hardware"
    EXTENDED_WARRANTY = "extended-warranty"


DEFAULT_WINDOW_TYPE = WindowType.DOUBLE_HUNG
DEFAULT_MATERIAL = Material.VINYL
DEFAULT_BRAND = "standard"


class WindowSpec(WireModel):
    """One quoted line: a window size, style and quantity."""

    model_config = ConfigDict(frozen=True)

    width: float = Field(ge=MIN_DIMENSION_IN, le=MAX_DIMENSION_IN, allow_inf_nan=False)
    height: float = Field(ge=MIN_DIMENSION_IN, le=MAX_DIMENSION_IN, allow_inf_nan=False)
    quantity: int = Field(default=1, ge=MIN_QUANTITY, le=MAX_QUANTITY)
    window_type: WindowType = DEFAULT_WINDOW_TYPE
    material: Material = DEFAULT_MATERIAL
    brand: str = DEFAULT_BRAND
    options: tuple[WindowOption, ...] = ()
    notes: Optional[str] = None

    @field_validator("window_type", "material", mode="before")
    @classmethod
    def _normalize_enum(cls, value: Any) -> Any:
        if isinstance(value, str):
            return normalize_key(value)
        return value

    @field_validator("options", mode="before")
    @classmethod
    def _normalize_options(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        seen: list[Any] = []
        for item in value:
            key = normalize_key(item) if isinstance(item, str) else item
            if key not in seen:
                seen.append(key)
        return tuple(seen)

    @field_validator("brand", mode="before")
    @classmethod
    def _default_brand(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_BRAND
        return value.strip() if isinstance(value, str) else value
