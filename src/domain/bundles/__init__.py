"""
Bundles Subdomain

Product bundles an owner can hold, the catalog that defines them, and the
qualifier rules a grant request must satisfy.

This module exports:
    - Bundle: Bundle held by an owner (id + optional expiry)
    - CatalogBundle: Catalog definition of a bundle
    - BundleCatalog: Lookup over catalog definitions
    - check_qualifiers: Qualifier validation for grant requests
    - expiry_from_duration: ISO 8601 duration arithmetic for bundle expiry
"""

from .bundle import Bundle
from .catalog import BundleCatalog, CatalogBundle, load_catalog
from .qualifiers import check_qualifiers, expiry_from_duration

__all__ = [
    "Bundle",
    "BundleCatalog",
    "CatalogBundle",
    "check_qualifiers",
    "expiry_from_duration",
    "load_catalog",
]
