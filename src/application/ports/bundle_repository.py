"""
BundleRepository Interface

Domain store of the bundles each owner holds. Writes are keyed by
(owner_id, bundle_id) so a redelivered grant or removal converges to the
same state instead of duplicating it.
"""

from typing import Optional, Protocol

from src.domain.bundles import Bundle


class BundleRepositoryProtocol(Protocol):
    def list_bundles(self, owner_id: str) -> list[Bundle]:
        ...

    def get_bundle(self, owner_id: str, bundle_id: str) -> Optional[Bundle]:
        ...

    def add_bundle(self, owner_id: str, bundle: Bundle) -> bool:
        """Add if absent. Returns False when the owner already holds it."""
        ...

    def remove_bundle(self, owner_id: str, bundle_id: str) -> bool:
        """Remove if present. Returns False when it was not held."""
        ...

    def remove_all(self, owner_id: str) -> int:
        """Remove every bundle of the owner. Returns how many were removed."""
        ...
