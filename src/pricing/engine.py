"""
Deterministic window pricing.

Per line: universal inches -> base -> catalog multipliers -> sales markup
-> optional hidden markup gives the unit price; subtotal, labor, tax and
total are rounded to cents with banker's rounding and nothing else is.
Per quote: lines are priced independently and summed, and the final
total is clamped up to the minimum order value.

Usage:
    engine = PricingEngine(catalog)
    result = await engine.calculate_quote([spec_a, spec_b])
    if result.ok:
        print(result.value.final_total)
"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from src.catalog.defaults import LABOR_COMPLEXITY, OPTION_PRICES
from src.catalog.reference_catalog import ReferenceCatalog
from src.errors import ErrorKind, PricingError, Result
from src.schemas.pricing_schema import (
    BreakdownItem,
    EnergySavings,
    Multipliers,
    PriceBreakdown,
    PricingConfig,
    Quote,
    QuoteLine,
)
from src.schemas.window_schema import Material, WindowOption, WindowSpec, WindowType
from src.utils import generate_unique_id, normalize_key, round2, utc_now

logger = logging.getLogger(__name__)

ENERGY_SAVINGS_RATE = 0.15
ENERGY_LIFETIME_YEARS = 20


def universal_inches(width: float, height: float) -> float:
    """Average of width and height.

    Examples:
        >>> universal_inches(36, 48)
        42.0
    """
    return (width + height) / 2


def _coerce_enum(enum_cls: Any, value: Any, line_index: int, label: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(normalize_key(str(value)))
    except ValueError:
        raise PricingError(line_index, f"unrecognized {label} {value!r}") from None


def options_cost(options: Sequence[Any], quantity: int, line_index: int = 0) -> float:
    """Flat option prices times quantity; no markups apply."""
    total = 0.0
    for option in options:
        total += OPTION_PRICES[_coerce_enum(WindowOption, option, line_index, "option")]
    return total * quantity


def _hidden_factor(config: PricingConfig) -> float:
    return config.hidden_markup if config.apply_hidden_markup else 1.0


def _check_dimensions(spec: WindowSpec, line_index: int) -> None:
    for label, value in (("width", spec.width), ("height", spec.height)):
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            raise PricingError(line_index, f"{label} is not a finite number")
        if value <= 0:
            raise PricingError(line_index, f"{label} must be positive, got {value}")
    if not isinstance(spec.quantity, int) or spec.quantity < 1:
        raise PricingError(line_index, f"quantity must be a positive integer, got {spec.quantity!r}")


def price_line(
    spec: WindowSpec,
    multipliers: Multipliers,
    config: PricingConfig,
    line_index: int = 0,
) -> QuoteLine:
    """Price one window. Raises PricingError when the line cannot be priced."""
    _check_dimensions(spec, line_index)
    window_type = _coerce_enum(WindowType, spec.window_type, line_index, "window type")
    _coerce_enum(Material, spec.material, line_index, "material")

    ui = universal_inches(spec.width, spec.height)
    base = ui * config.price_per_ui
    adjusted = base * multipliers.material * multipliers.window_type * multipliers.brand
    unit = adjusted * config.sales_markup * _hidden_factor(config)

    subtotal = round2(unit * spec.quantity)
    option_total = options_cost(spec.options, spec.quantity, line_index)

    labor_per_ui = config.labor_base_rate / 100
    complexity = LABOR_COMPLEXITY.get(window_type, 1.0)
    labor = round2(ui * labor_per_ui * complexity * spec.quantity * _hidden_factor(config))

    pre_tax = subtotal + option_total + labor
    tax = round2(pre_tax * config.tax_rate)
    total = round2(pre_tax + tax)

    for label, value in (("unit price", unit), ("total", total)):
        if not math.isfinite(value) or value < 0:
            raise PricingError(line_index, f"{label} is not a valid amount: {value}")

    return QuoteLine(
        line_index=line_index,
        spec=spec,
        ui=ui,
        multipliers=multipliers,
        unit_price=round2(unit),
        subtotal=subtotal,
        options_cost=option_total,
        labor_cost=labor,
        tax_amount=tax,
        total_price=total,
    )


def estimate_energy_savings(grand_total: float) -> EnergySavings:
    annual = round2(grand_total * ENERGY_SAVINGS_RATE)
    return EnergySavings(
        annual_savings=annual,
        lifetime_savings=round2(annual * ENERGY_LIFETIME_YEARS),
        payback_years=round(grand_total / annual, 1) if annual > 0 else None,
    )


def aggregate_quote(
    lines: list[QuoteLine],
    config: PricingConfig,
    quote_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Quote:
    """Sum priced lines and apply the minimum-order floor."""
    grand_total = round2(sum(line.total_price for line in lines))
    final_total = max(grand_total, config.minimum_order_value)
    return Quote(
        quote_id=quote_id or generate_unique_id("quote"),
        lines=lines,
        subtotal=round2(sum(line.subtotal for line in lines)),
        total_options=round2(sum(line.options_cost for line in lines)),
        total_labor=round2(sum(line.labor_cost for line in lines)),
        total_tax=round2(sum(line.tax_amount for line in lines)),
        grand_total=grand_total,
        final_total=final_total,
        minimum_applied=config.minimum_order_value > grand_total,
        minimum_order_value=config.minimum_order_value,
        window_count=len(lines),
        total_quantity=sum(line.spec.quantity for line in lines),
        energy_savings=estimate_energy_savings(grand_total),
        config=config,
        created_at=created_at or utc_now(),
    )


def price_breakdown(
    spec: WindowSpec, multipliers: Multipliers, config: PricingConfig
) -> PriceBreakdown:
    """Customer-facing breakdown of one window.

    The hidden markup is folded into the markup row rather than itemized.
    Raises PricingError like ``price_line``.
    """
    line = price_line(spec, multipliers, config)
    base = line.ui * config.price_per_ui
    after_material = base * multipliers.material
    after_type = after_material * multipliers.window_type
    after_brand = after_type * multipliers.brand
    quantity = spec.quantity

    items = [
        BreakdownItem(label="Base price", amount=round2(base * quantity)),
        BreakdownItem(label="Material adjustment", amount=round2((after_material - base) * quantity)),
        BreakdownItem(label="Window type adjustment", amount=round2((after_type - after_material) * quantity)),
        BreakdownItem(label="Brand adjustment", amount=round2((after_brand - after_type) * quantity)),
        BreakdownItem(label="Markup", amount=round2(line.subtotal - after_brand * quantity)),
        BreakdownItem(label="Options", amount=line.options_cost),
        BreakdownItem(label="Installation labor", amount=line.labor_cost),
    ]
    return PriceBreakdown(
        spec=spec,
        ui=line.ui,
        items=items,
        tax_amount=line.tax_amount,
        total_price=line.total_price,
    )


class PricingEngine:
    """Prices quotes against the reference catalog."""

    def __init__(self, catalog: ReferenceCatalog):
        self.catalog = catalog

    async def resolve_config(
        self,
        config: Optional[PricingConfig] = None,
        overrides: Optional[dict[str, Any]] = None,
    ) -> Result[PricingConfig]:
        base = config or await self.catalog.get_pricing_config()
        try:
            return Result.success(base.merged(overrides))
        except ValidationError as exc:
            details = [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()]
            return Result.failure(ErrorKind.VALIDATION, "Invalid pricing configuration", details)

    async def calculate_quote(
        self,
        specs: Sequence[WindowSpec],
        config: Optional[PricingConfig] = None,
        overrides: Optional[dict[str, Any]] = None,
    ) -> Result[Quote]:
        """Price every line or none; a failed line fails the whole quote."""
        if not specs:
            return Result.failure(ErrorKind.VALIDATION, "At least one window is required")

        resolved = await self.resolve_config(config, overrides)
        if not resolved.ok:
            return resolved

        multipliers = await asyncio.gather(*(self.catalog.multipliers_for(s) for s in specs))
        try:
            lines = [
                price_line(spec, mults, resolved.value, index)
                for index, (spec, mults) in enumerate(zip(specs, multipliers))
            ]
        except PricingError as exc:
            logger.error("Pricing failed on line %d: %s", exc.line_index, exc.reason)
            return Result.failure(
                ErrorKind.PRICING, str(exc), [f"lineIndex={exc.line_index}", exc.reason]
            )

        quote = aggregate_quote(lines, resolved.value)
        logger.info(
            "Quote %s priced: %d lines, grand %.2f, final %.2f",
            quote.quote_id, quote.window_count, quote.grand_total, quote.final_total,
        )
        return Result.success(quote)

    async def breakdown(
        self,
        spec: WindowSpec,
        config: Optional[PricingConfig] = None,
        overrides: Optional[dict[str, Any]] = None,
    ) -> Result[PriceBreakdown]:
        resolved = await self.resolve_config(config, overrides)
        if not resolved.ok:
            return resolved
        multipliers = await self.catalog.multipliers_for(spec)
        try:
            return Result.success(price_breakdown(spec, multipliers, resolved.value))
        except PricingError as exc:
            return Result.failure(ErrorKind.PRICING, str(exc), [f"lineIndex={exc.line_index}"])
