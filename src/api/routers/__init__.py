"""
API Routers Package

FastAPI routers grouped by resource. All async-capable endpoints share the
ingest contract (x-request-id, x-wait-time-ms, x-initial-request, 202 polling).

Architecture Notes:
    - Part of API Layer (Presentation)
    - Routers are thin wrappers around Application Layer handlers
    - All routers follow dependency injection pattern

Available Routers:
    - bundles_router: Bundle list, grant and removal
    - vat_returns_router: VAT return submission
    - vat_obligations_router: VAT obligations
    - receipts_router: Stored VAT receipts
"""

from .bundles import router as bundles_router
from .receipts import router as receipts_router
from .vat_obligations import router as vat_obligations_router
from .vat_returns import router as vat_returns_router

__all__ = [
    "bundles_router",
    "vat_returns_router",
    "vat_obligations_router",
    "receipts_router",
]
