"""
Domain Layer - Core Business Logic

Business rules, entities and value objects. Framework-independent and
free of I/O.

Architecture:
    - Clean Architecture: Domain Layer is the center, no outward dependencies
    - Dependency Inversion: Application ports describe storage, Infrastructure
      implements it

Subdomains:
    - async_requests: Request record state machine
    - bundles: Bundle catalog, qualifiers, entitlement expiry
    - vat: VAT return validation, receipts, downstream error advice
    - shared: Domain exceptions

Usage:
    >>> from src.domain import DomainException, RequestRecord, RequestStatus
    >>> from src.domain.bundles import load_catalog
"""

from .async_requests import RequestRecord, RequestStatus, TransitionOutcome
from .shared import DomainException

__all__ = [
    "RequestRecord",
    "RequestStatus",
    "TransitionOutcome",
    "DomainException",
]
