"""
Application Queries (CQRS reads)

Synchronous reads that never go through the work queue.

Contains:
    - list_bundles: Owner's active bundles (also the DELETE ownership pre-check)
    - get_receipts: Stored VAT receipts
"""

from src.application.queries.get_receipts import GetReceiptsQuery, GetReceiptsQueryHandler
from src.application.queries.list_bundles import (
    BundleListResult,
    ListBundlesQuery,
    ListBundlesQueryHandler,
)

__all__ = [
    "GetReceiptsQuery",
    "GetReceiptsQueryHandler",
    "ListBundlesQuery",
    "ListBundlesQueryHandler",
    "BundleListResult",
]
