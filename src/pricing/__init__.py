from src.pricing.engine import PricingEngine, aggregate_quote, price_breakdown, price_line, universal_inches

__all__ = ["PricingEngine", "aggregate_quote", "price_breakdown", "price_line", "universal_inches"]
