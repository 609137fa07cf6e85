"""Document store collection names."""


class Collections:
    """Named collections; catalog tables are flat and keyed by name."""

    CUSTOMERS = "Customers"
    QUOTE_ITEMS = "QuoteItems"
    ANALYSIS_RESULTS = "AIWindowMeasureService"
    ANALYTICS = "Analytics"
    MATERIALS = "Materials"
    WINDOW_TYPES = "WindowTypes"
    WINDOW_BRANDS = "WindowBrands"
    WINDOW_OPTIONS = "WindowOptions"
    WINDOW_PRODUCTS = "WindowProductsMasterCatalog"
    PRICING_CONFIG = "BaseUICalculator"


CRITICAL_COLLECTIONS = (
    Collections.CUSTOMERS,
    Collections.ANALYTICS,
    Collections.QUOTE_ITEMS,
)

SEARCHABLE_COLLECTIONS = (
    Collections.CUSTOMERS,
    Collections.QUOTE_ITEMS,
    Collections.ANALYSIS_RESULTS,
    Collections.WINDOW_PRODUCTS,
)
