"""
In-process persistence backends (STATE_STORE_BACKEND=memory).

Single-process only: local development, the test suite and demos.
"""

from src.infrastructure.persistence.memory.domain_repositories import (
    InMemoryBundleRepository,
    InMemoryDeadLetterSink,
    InMemoryReceiptRepository,
)
from src.infrastructure.persistence.memory.request_state_store import (
    InMemoryRequestStateStore,
)

__all__ = [
    "InMemoryBundleRepository",
    "InMemoryDeadLetterSink",
    "InMemoryReceiptRepository",
    "InMemoryRequestStateStore",
]
