"""Built-in reference tables served when the catalog store is empty or down."""

from src.schemas.pricing_schema import PricingConfig
from src.schemas.window_schema import Material, WindowOption, WindowType

DEFAULT_MATERIAL_MULTIPLIERS: dict[str, float] = {
    Material.VINYL.value: 1.0,
    Material.WOOD.value: 1.8,
    Material.FIBERGLASS.value: 1.5,
    Material.ALUMINUM_CLAD.value: 1.6,
    Material.CELLULAR_PVC.value: 1.3,
    Material.COMPOSITE.value: 1.4,
}

DEFAULT_TYPE_MULTIPLIERS: dict[str, float] = {
    WindowType.SINGLE_HUNG.value: 1.0,
    WindowType.DOUBLE_HUNG.value: 1.1,
    WindowType.CASEMENT.value: 1.2,
    WindowType.AWNING.value: 1.15,
    WindowType.SLIDING.value: 0.95,
    WindowType.PICTURE.value: 0.9,
    WindowType.BAY.value: 2.5,
    WindowType.BOW.value: 3.0,
    WindowType.GARDEN.value: 1.8,
}

# Keys are normalized brand names; anything else (including "standard") is 1.0.
DEFAULT_BRAND_MULTIPLIERS: dict[str, float] = {
    "andersen": 1.4,
    "pella": 1.3,
    "marvin": 1.5,
    "windsor": 1.2,
    "provia": 1.25,
    "thermo-tech": 1.1,
    "milgard": 1.15,
    "simonton": 1.0,
}

OPTION_PRICES: dict[WindowOption, float] = {
    WindowOption.LOW_E_COATING: 50.0,
    WindowOption.ENHANCED_SECURITY_FEATURES: 75.0,
    WindowOption.CUSTOM_GRIDS: 60.0,
    WindowOption.CUSTOM_COLORS: 80.0,
    WindowOption.ARGON_GAS_FILL: 45.0,
    WindowOption.TRIPLE_PANE_GLASS: 200.0,
    WindowOption.GRIDS_BETWEEN_GLASS: 125.0,
    WindowOption.ENERGY_STAR_RATING: 35.0,
    WindowOption.NOISE_REDUCTION_PACKAGE: 90.0,
    WindowOption.HURRICANE_IMPACT_RATING: 150.0,
    WindowOption.CUSTOM_HARDWARE: 100.0,
    WindowOption.EXTENDED_WARRANTY: 85.0,
}

LABOR_COMPLEXITY: dict[WindowType, float] = {
    WindowType.SINGLE_HUNG: 1.0,
    WindowType.DOUBLE_HUNG: 1.1,
    WindowType.CASEMENT: 1.2,
    WindowType.AWNING: 1.15,
    WindowType.SLIDING: 0.9,
    WindowType.PICTURE: 0.8,
    WindowType.BAY: 2.0,
    WindowType.BOW: 2.5,
    WindowType.GARDEN: 1.5,
}

DEFAULT_PRICING_CONFIG = PricingConfig()


def default_material_rows() -> list[dict]:
    return [
        {"materialName": name, "materialMultiplier": mult}
        for name, mult in DEFAULT_MATERIAL_MULTIPLIERS.items()
    ]


def default_type_rows() -> list[dict]:
    return [
        {"typeName": name, "typeMultiplier": mult, "laborComplexity": LABOR_COMPLEXITY[WindowType(name)]}
        for name, mult in DEFAULT_TYPE_MULTIPLIERS.items()
    ]


def default_brand_rows() -> list[dict]:
    return [
        {"brandName": name, "priceMultiplier": mult}
        for name, mult in DEFAULT_BRAND_MULTIPLIERS.items()
    ]


def default_option_rows() -> list[dict]:
    return [
        {"optionName": option.value, "optionPrice": price}
        for option, price in OPTION_PRICES.items()
    ]


def default_pricing_rows() -> list[dict]:
    return [{**DEFAULT_PRICING_CONFIG.model_dump(by_alias=True), "active": True}]
