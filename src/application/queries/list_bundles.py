"""
ListBundlesQuery - CQRS Read Query

Query object and handler listing the bundles an owner holds.

Responsibility:
    - Query: Data holder with the owner id
    - Handler: Reads the bundle repository, drops expired bundles

Architecture Notes:
    - Part of Application Layer (orchestration)
    - Synchronous read of the domain store, no request record involved
    - Also used by the DELETE not-found pre-check (owner_holds)
"""

import logging
from datetime import date
from typing import Callable, Optional

from pydantic import BaseModel, Field

from src.application.ports.bundle_repository import BundleRepositoryProtocol
from src.domain.bundles import Bundle

logger = logging.getLogger(__name__)


class ListBundlesQuery(BaseModel):
    """Query for the bundles held by one owner."""

    owner_id: str = Field(min_length=1, description="Hashed subject of the caller")


class BundleListResult(BaseModel):
    """Result DTO: active bundles of the owner."""

    bundles: list[Bundle] = Field(default_factory=list)


def _is_active(bundle: Bundle, today: date) -> bool:
    if not bundle.expiry:
        return True
    return date.fromisoformat(bundle.expiry) >= today


class ListBundlesQueryHandler:
    """
    Handler for listing owner bundles.

    Usage:
        handler = ListBundlesQueryHandler(repository)
        result = await handler.handle(ListBundlesQuery(owner_id="..."))
    """

    def __init__(
        self,
        repository: BundleRepositoryProtocol,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.repository = repository
        self._today = today

    async def handle(self, query: ListBundlesQuery) -> BundleListResult:
        bundles = self.repository.list_bundles(query.owner_id)
        today = self._today()
        active = [bundle for bundle in bundles if _is_active(bundle, today)]
        logger.debug(f"Owner has {len(active)} active bundles ({len(bundles)} stored)")
        return BundleListResult(bundles=active)

    def owner_holds(self, owner_id: str, bundle_id: Optional[str]) -> bool:
        """Side-effect-free ownership check for the DELETE pre-check."""
        if not bundle_id:
            return False
        return self.repository.get_bundle(owner_id, bundle_id) is not None
