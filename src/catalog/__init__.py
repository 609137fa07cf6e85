from src.catalog.reference_catalog import CatalogCategory, ReferenceCatalog

__all__ = ["CatalogCategory", "ReferenceCatalog"]
