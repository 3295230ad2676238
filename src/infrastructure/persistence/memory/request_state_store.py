"""
In-Memory Request State Store

Same contract as the Redis store, kept in a dict guarded by an RLock.
TTL is evaluated lazily against an injectable monotonic clock, so tests can
expire records by advancing a fake clock.
"""

import copy
import logging
import threading
import time
from typing import Callable, Optional

from src.domain.async_requests import (
    ErrorDetail,
    RequestRecord,
    RequestStatus,
    StoredResult,
    TransitionOutcome,
)
from src.domain.async_requests.request_record import utc_now_iso

logger = logging.getLogger(__name__)


class InMemoryRequestStateStore:
    """
    Request state store for a single process.

    Args:
        ttl_seconds: Record TTL
        clock: Monotonic seconds (default time.monotonic)

    Examples:
        >>> now = [0.0]
        >>> store = InMemoryRequestStateStore(ttl_seconds=10, clock=lambda: now[0])
        >>> store.create(RequestRecord.new("r1", "o1", "bundle.grant", {}))
        True
        >>> now[0] = 11.0
        >>> store.get("r1", "o1") is None
        True
    """

    def __init__(
        self, ttl_seconds: int = 3600, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.RLock()
        # key -> (record, expires_at on the monotonic clock)
        self._records: dict[tuple[str, str], tuple[RequestRecord, float]] = {}

    def _live(self, key: tuple[str, str]) -> Optional[RequestRecord]:
        entry = self._records.get(key)
        if entry is None:
            return None
        record, expires_at = entry
        if self._clock() >= expires_at:
            del self._records[key]
            logger.debug(f"Request record {key[1]} expired")
            return None
        return record

    def _put(self, key: tuple[str, str], record: RequestRecord) -> None:
        self._records[key] = (record, self._clock() + self.ttl_seconds)

    def create(self, record: RequestRecord) -> bool:
        key = (record.owner_id, record.request_id)
        with self._lock:
            if self._live(key) is not None:
                return False
            self._put(key, copy.deepcopy(record))
            return True

    def get(self, request_id: str, owner_id: str) -> Optional[RequestRecord]:
        with self._lock:
            record = self._live((owner_id, request_id))
            return copy.deepcopy(record) if record is not None else None

    def transition(
        self,
        request_id: str,
        owner_id: str,
        new_status: RequestStatus,
        result: Optional[StoredResult] = None,
        error: Optional[ErrorDetail] = None,
    ) -> TransitionOutcome:
        key = (owner_id, request_id)
        with self._lock:
            current = self._live(key)
            if current is None:
                return TransitionOutcome.NOT_FOUND
            record = copy.deepcopy(current)
            outcome = record.apply_transition(new_status, result, error)
            if outcome == TransitionOutcome.REJECTED_TERMINAL:
                logger.warning(
                    f"Anomaly: attempted {new_status.value} transition on "
                    f"terminal request {request_id} ({record.status.value})"
                )
                return outcome
            if outcome != TransitionOutcome.APPLIED:
                return outcome
            self._put(key, record)
            return outcome

    def mark_requeued(
        self, request_id: str, owner_id: str, expected_updated_at: str
    ) -> bool:
        key = (owner_id, request_id)
        with self._lock:
            current = self._live(key)
            if (
                current is None
                or current.status != RequestStatus.PENDING
                or current.updated_at != expected_updated_at
            ):
                return False
            record = copy.deepcopy(current)
            record.updated_at = utc_now_iso()
            self._put(key, record)
            return True

    def delete(self, request_id: str, owner_id: str) -> None:
        with self._lock:
            self._records.pop((owner_id, request_id), None)
