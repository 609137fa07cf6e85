"""Pricing configuration and quote result models."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from src.schemas.base import WireModel
from src.schemas.window_schema import WindowSpec


class PricingConfig(WireModel):
    """Rates and markups used to price a quote."""

    price_per_ui: float = Field(default=5.58, gt=0, alias="pricePerUI", allow_inf_nan=False)
    sales_markup: float = Field(default=1.10, ge=1.0, allow_inf_nan=False)
    installation_rate: float = Field(default=0.18, ge=0, allow_inf_nan=False)
    tax_rate: float = Field(default=0.055, ge=0, lt=1, allow_inf_nan=False)
    hidden_markup: float = Field(default=1.30, ge=1.0, allow_inf_nan=False)
    labor_base_rate: float = Field(default=150.0, ge=0, allow_inf_nan=False)
    minimum_order_value: float = Field(default=500.0, ge=0, allow_inf_nan=False)
    apply_hidden_markup: bool = False

    def merged(self, overrides: Optional[dict]) -> "PricingConfig":
        """Return a copy with caller-supplied values layered on top.

        Overrides may use wire (camelCase) or Python names; the result is
        re-validated so a bad override raises ``pydantic.ValidationError``.
        """
        if not overrides:
            return self
        base = self.model_dump(by_alias=True)
        field_aliases = {
            name: info.alias or name for name, info in type(self).model_fields.items()
        }
        for key, value in overrides.items():
            if value is None:
                continue
            base[field_aliases.get(key, key)] = value
        return type(self).model_validate(base)


class Multipliers(WireModel):
    """Catalog multipliers resolved for one line."""

    material: float = 1.0
    window_type: float = 1.0
    brand: float = 1.0


class QuoteLine(WireModel):
    """Priced result for one WindowSpec."""

    line_index: int
    spec: WindowSpec
    ui: float
    multipliers: Multipliers
    unit_price: float
    subtotal: float
    options_cost: float
    labor_cost: float
    tax_amount: float
    total_price: float


class EnergySavings(WireModel):
    """Advisory savings estimate; never feeds back into totals."""

    annual_savings: float
    lifetime_savings: float
    payback_years: Optional[float] = None


class Quote(WireModel):
    """Ordered quote lines plus aggregates."""

    quote_id: str
    lines: list[QuoteLine] = Field(default_factory=list)
    subtotal: float
    total_options: float
    total_labor: float
    total_tax: float
    grand_total: float
    final_total: float
    minimum_applied: bool
    minimum_order_value: float
    window_count: int
    total_quantity: int
    energy_savings: EnergySavings
    config: PricingConfig
    created_at: datetime


class BreakdownItem(WireModel):
    """One customer-facing row of a single-window price breakdown."""

    label: str
    amount: float


class PriceBreakdown(WireModel):
    """Customer-facing explanation of how one window was priced."""

    spec: WindowSpec
    ui: float
    items: list[BreakdownItem] = Field(default_factory=list)
    tax_amount: float
    total_price: float
