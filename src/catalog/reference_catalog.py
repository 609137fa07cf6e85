"""
Reference catalog with a per-category read-through TTL cache.

This is the only process-wide mutable state in the service. Reads are
lock-free and concurrent refreshes may race; every load is idempotent so
the last write wins. On a backend error the last good value is served,
otherwise the built-in defaults.

Usage:
    catalog = ReferenceCatalog(persistence)
    multipliers = await catalog.multipliers_for(spec)
    config = await catalog.get_pricing_config()
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import ValidationError

from src.catalog.defaults import (
    DEFAULT_BRAND_MULTIPLIERS,
    DEFAULT_MATERIAL_MULTIPLIERS,
    DEFAULT_PRICING_CONFIG,
    DEFAULT_TYPE_MULTIPLIERS,
    default_brand_rows,
    default_material_rows,
    default_option_rows,
    default_pricing_rows,
    default_type_rows,
)
from src.config import CacheConfig, settings
from src.schemas.pricing_schema import Multipliers, PricingConfig
from src.schemas.window_schema import WindowSpec
from src.storage.collections import Collections
from src.storage.document_store import MAX_QUERY_LIMIT, Query
from src.storage.persistence import PersistenceAdapter
from src.utils import normalize_key

logger = logging.getLogger(__name__)


class CatalogCategory(str, Enum):
    """Independently cached catalog tables."""

    MATERIALS = "materials"
    WINDOW_TYPES = "window_types"
    BRANDS = "brands"
    OPTIONS = "options"
    PRODUCTS = "products"
    PRICING = "pricing"


_COLLECTIONS: dict[CatalogCategory, str] = {
    CatalogCategory.MATERIALS: Collections.MATERIALS,
    CatalogCategory.WINDOW_TYPES: Collections.WINDOW_TYPES,
    CatalogCategory.BRANDS: Collections.WINDOW_BRANDS,
    CatalogCategory.OPTIONS: Collections.WINDOW_OPTIONS,
    CatalogCategory.PRODUCTS: Collections.WINDOW_PRODUCTS,
    CatalogCategory.PRICING: Collections.PRICING_CONFIG,
}

_DEFAULT_ROWS: dict[CatalogCategory, Callable[[], list[dict]]] = {
    CatalogCategory.MATERIALS: default_material_rows,
    CatalogCategory.WINDOW_TYPES: default_type_rows,
    CatalogCategory.BRANDS: default_brand_rows,
    CatalogCategory.OPTIONS: default_option_rows,
    CatalogCategory.PRODUCTS: list,
    CatalogCategory.PRICING: default_pricing_rows,
}


@dataclass(frozen=True)
class _CacheEntry:
    rows: list[dict]
    loaded_at: float
    from_defaults: bool


def _is_active(row: dict) -> bool:
    value = row.get("active", True)
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


class ReferenceCatalog:
    """Loads and caches materials, types, brands, options, products and pricing."""

    def __init__(
        self,
        persistence: PersistenceAdapter,
        cache_config: CacheConfig = settings.cache,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.persistence = persistence
        self.cache_config = cache_config
        self.clock = clock
        self._cache: dict[CatalogCategory, _CacheEntry] = {}

    def _ttl(self, category: CatalogCategory) -> float:
        if category == CatalogCategory.MATERIALS:
            return self.cache_config.materials_ttl_sec
        if category == CatalogCategory.PRICING:
            return self.cache_config.pricing_ttl_sec
        return self.cache_config.products_ttl_sec

    def _is_fresh(self, entry: _CacheEntry, category: CatalogCategory) -> bool:
        return self.clock() - entry.loaded_at < self._ttl(category)

    async def get(self, category: CatalogCategory) -> list[dict]:
        """Return cached rows, loading them when missing or expired."""
        entry = self._cache.get(category)
        if entry is not None and self._is_fresh(entry, category):
            return entry.rows
        return await self.refresh(category)

    async def refresh(self, category: CatalogCategory) -> list[dict]:
        """Reload one category from the store, bypassing the TTL."""
        collection = _COLLECTIONS[category]
        result = await self.persistence.query(collection, Query().limit(MAX_QUERY_LIMIT))
        if not result.ok:
            cached = self._cache.get(category)
            if cached is not None:
                logger.warning(
                    "Catalog %s load failed, serving last good value: %s",
                    category.value, result.error.message,
                )
                return cached.rows
            logger.warning(
                "Catalog %s load failed, serving defaults: %s",
                category.value, result.error.message,
            )
            return _DEFAULT_ROWS[category]()

        rows = result.value.items
        from_defaults = not rows
        if from_defaults:
            rows = _DEFAULT_ROWS[category]()
        self._cache[category] = _CacheEntry(rows, self.clock(), from_defaults)
        logger.debug("Catalog %s loaded: %d rows", category.value, len(rows))
        return rows

    def invalidate(self, category: Optional[CatalogCategory] = None) -> None:
        """Drop one category from the cache, or all of them."""
        if category is None:
            self._cache.clear()
        else:
            self._cache.pop(category, None)

    # -- listings -----------------------------------------------------------

    async def _listing(self, table: CatalogCategory, **filters: Any) -> dict[str, Any]:
        rows = await self.get(table)
        for key, value in filters.items():
            if value is not None:
                rows = [r for r in rows if normalize_key(str(r.get(key, ""))) == normalize_key(value)]
        return {"items": rows, "totalCount": len(rows)}

    async def list_materials(self) -> dict[str, Any]:
        return await self._listing(CatalogCategory.MATERIALS)

    async def list_window_types(self) -> dict[str, Any]:
        return await self._listing(CatalogCategory.WINDOW_TYPES)

    async def list_brands(self) -> dict[str, Any]:
        return await self._listing(CatalogCategory.BRANDS)

    async def list_options(self) -> dict[str, Any]:
        return await self._listing(CatalogCategory.OPTIONS)

    async def list_products(self, category: Optional[str] = None) -> dict[str, Any]:
        return await self._listing(CatalogCategory.PRODUCTS, category=category)

    async def get_pricing_config(self) -> PricingConfig:
        """The active pricing row layered over the default config."""
        rows = await self.get(CatalogCategory.PRICING)
        active = next((row for row in rows if _is_active(row)), None)
        if active is None:
            return DEFAULT_PRICING_CONFIG
        try:
            return DEFAULT_PRICING_CONFIG.merged(active)
        except ValidationError as exc:
            logger.warning("Invalid pricing row in catalog, using defaults: %s", exc)
            return DEFAULT_PRICING_CONFIG

    # -- multipliers --------------------------------------------------------

    async def _multiplier(
        self,
        category: CatalogCategory,
        name_field: str,
        value_field: str,
        name: str,
        defaults: dict[str, float],
    ) -> float:
        try:
            key = normalize_key(name)
            for row in await self.get(category):
                if normalize_key(str(row.get(name_field, ""))) != key:
                    continue
                value = float(row.get(value_field))
                if math.isfinite(value) and value > 0:
                    return value
                logger.warning("Ignoring bad %s multiplier for '%s': %r", category.value, name, value)
                break
            return defaults.get(key, 1.0)
        except Exception as exc:
            logger.warning("%s lookup failed for '%s', using 1.0: %s", category.value, name, exc)
            return 1.0

    async def material_for(self, material: str) -> float:
        return await self._multiplier(
            CatalogCategory.MATERIALS, "materialName", "materialMultiplier",
            material, DEFAULT_MATERIAL_MULTIPLIERS,
        )

    async def type_for(self, window_type: str) -> float:
        return await self._multiplier(
            CatalogCategory.WINDOW_TYPES, "typeName", "typeMultiplier",
            window_type, DEFAULT_TYPE_MULTIPLIERS,
        )

    async def brand_for(self, brand: str) -> float:
        return await self._multiplier(
            CatalogCategory.BRANDS, "brandName", "priceMultiplier",
            brand, DEFAULT_BRAND_MULTIPLIERS,
        )

    async def multipliers_for(self, spec: WindowSpec) -> Multipliers:
        """Fetch the three multipliers for a line concurrently."""
        material, window_type, brand = await asyncio.gather(
            self.material_for(str(getattr(spec.material, "value", spec.material))),
            self.type_for(str(getattr(spec.window_type, "value", spec.window_type))),
            self.brand_for(str(spec.brand)),
        )
        return Multipliers(material=material, window_type=window_type, brand=brand)

    def health(self) -> dict[str, Any]:
        now = self.clock()
        categories = {
            category.value: {
                "cached": category in self._cache,
                "ageSeconds": round(now - self._cache[category].loaded_at, 1)
                if category in self._cache else None,
                "fromDefaults": self._cache[category].from_defaults
                if category in self._cache else None,
            }
            for category in CatalogCategory
        }
        return {"status": "healthy", "categories": categories}
