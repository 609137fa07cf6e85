"""Dynamic prompt construction for vision LLM requests."""

import json
from typing import Any, Optional

from src.schemas.analysis_schema import AnalysisContext
from src.schemas.pricing_schema import Quote


def build_analysis_prompt(context: AnalysisContext) -> str:
    """Build the user text that accompanies an uploaded window photo."""
    parts = ["Analyze the window in this photo."]
    if context.notes:
        parts.append(f"The customer added: {context.notes}")
    if context.device_type == "mobile":
        parts.append("The photo was taken on a phone, so expect some perspective distortion.")
    return "\n".join(parts)


def build_measurement_prompt(
    width: float,
    height: float,
    window_type: str,
    notes: Optional[str] = None,
) -> str:
    """Build the plausibility question for a pair of measurements."""
    lines = [
        f"Window type: {window_type}",
        f"Measured width: {width:g} inches",
        f"Measured height: {height:g} inches",
    ]
    if notes:
        lines.append(f"Notes: {notes}")
    lines.append("\nAre these measurements plausible?")
    return "\n".join(lines)


def build_explanation_prompt(
    quote: Quote,
    customer_profile: Optional[dict[str, Any]] = None,
) -> str:
    """Build the explanation request for a priced quote.

    Only customer-facing fields are included; the pricing config is left
    out so internal markups never reach the model.
    """
    summary = {
        "windows": [
            {
                "width": line.spec.width,
                "height": line.spec.height,
                "quantity": line.spec.quantity,
                "windowType": line.spec.window_type.value,
                "material": line.spec.material.value,
                "brand": line.spec.brand,
                "options": [option.value for option in line.spec.options],
                "totalPrice": line.total_price,
            }
            for line in quote.lines
        ],
        "subtotal": quote.subtotal,
        "totalLabor": quote.total_labor,
        "totalTax": quote.total_tax,
        "finalTotal": quote.final_total,
        "minimumApplied": quote.minimum_applied,
        "energySavings": quote.energy_savings.to_wire(),
    }
    lines = ["Explain this quote to the customer:", json.dumps(summary, indent=2)]
    if customer_profile:
        name = customer_profile.get("name") or customer_profile.get("customerName")
        if name:
            lines.append(f"\nAddress the customer as {name}.")
        priorities = customer_profile.get("priorities")
        if priorities:
            lines.append(f"The customer cares most about: {priorities}.")
    return "\n".join(lines)
