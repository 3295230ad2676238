"""
Bundle Catalog

Catalog of grantable bundles loaded from a TOML file.

Responsibility:
    - Parse the catalog file into typed CatalogBundle definitions
    - Look bundles up by id

Architecture Notes:
    - Part of Bundles subdomain
    - Default catalog ships next to this module (catalog.toml)
    - Deployments may point BUNDLE_CATALOG_PATH at another file
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "catalog.toml"


class CatalogBundle(BaseModel):
    """
    Catalog definition of one bundle.

    Attributes:
        id: Bundle identifier
        name: Display name
        allocation: "automatic" or "on-request"
        timeout: ISO 8601 duration added to the grant date (optional)
        cap: Maximum bundles an owner may hold when this one is granted (optional)
        qualifiers: Qualifier rules (requiresTransactionId, subscriptionTier)
    """

    id: str
    name: Optional[str] = None
    allocation: str = "on-request"
    timeout: Optional[str] = None
    cap: Optional[int] = Field(default=None, ge=0)
    qualifiers: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_automatic(self) -> bool:
        return self.allocation == "automatic"


class BundleCatalog:
    """
    In-memory lookup over catalog bundles.

    Examples:
        >>> catalog = load_catalog()
        >>> catalog.get("test").cap
        10
        >>> catalog.get("missing") is None
        True
    """

    def __init__(self, bundles: list[CatalogBundle]) -> None:
        self._bundles = {bundle.id: bundle for bundle in bundles}

    def get(self, bundle_id: str) -> Optional[CatalogBundle]:
        return self._bundles.get(bundle_id)

    def __contains__(self, bundle_id: object) -> bool:
        return bundle_id in self._bundles

    def __len__(self) -> int:
        return len(self._bundles)

    @classmethod
    def from_toml(cls, text: str) -> "BundleCatalog":
        """Parse catalog TOML text (top-level [[bundles]] array)."""
        data = tomllib.loads(text)
        bundles = [CatalogBundle(**entry) for entry in data.get("bundles", [])]
        return cls(bundles)


def load_catalog(path: Optional[Path] = None) -> BundleCatalog:
    """
    Load the bundle catalog from disk.

    Args:
        path: Catalog file (default: catalog.toml shipped with this package)

    Returns:
        BundleCatalog with all bundles from the file

    Raises:
        FileNotFoundError: If the file does not exist
        tomllib.TOMLDecodeError: If the file is not valid TOML
    """
    catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH
    catalog = BundleCatalog.from_toml(catalog_path.read_text(encoding="utf-8"))
    logger.info(f"Loaded bundle catalog from {catalog_path} ({len(catalog)} bundles)")
    return catalog
