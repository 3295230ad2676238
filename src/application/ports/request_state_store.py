"""
RequestStateStore Interface

Contract for the durable key-value store holding one request record per
(request_id, owner_id).

Architecture Notes:
    - Protocol-based interface (structural typing)
    - Implementations: Redis (production), in-process memory (single process)
    - The conditional write in transition() is the only per-request mutual
      exclusion primitive in the system
"""

from typing import Optional, Protocol

from src.domain.async_requests import (
    ErrorDetail,
    RequestRecord,
    RequestStatus,
    StoredResult,
    TransitionOutcome,
)


class RequestStateStoreProtocol(Protocol):
    """
    Protocol defining request record persistence.

    Operations:
        - create(): Insert if absent (duplicate attempts are no-ops)
        - get(): Current record or None (missing or expired)
        - transition(): Conditional status change, never overwrites terminal
        - mark_requeued(): Touch a still-PENDING record before re-enqueueing
        - delete(): Compensation when the enqueue after create() fails
    """

    def create(self, record: RequestRecord) -> bool:
        """Store record with TTL if absent. Returns True only if it was created."""
        ...

    def get(self, request_id: str, owner_id: str) -> Optional[RequestRecord]:
        ...

    def transition(
        self,
        request_id: str,
        owner_id: str,
        new_status: RequestStatus,
        result: Optional[StoredResult] = None,
        error: Optional[ErrorDetail] = None,
    ) -> TransitionOutcome:
        """Apply a transition unless the record is terminal; refresh TTL when applied."""
        ...

    def mark_requeued(
        self, request_id: str, owner_id: str, expected_updated_at: str
    ) -> bool:
        """
        Bump updated_at if the record is still PENDING and unchanged.

        Compare-and-set on updated_at, so of several concurrent callers that
        saw the same stale record only one gets True and re-enqueues.
        """
        ...

    def delete(self, request_id: str, owner_id: str) -> None:
        ...
