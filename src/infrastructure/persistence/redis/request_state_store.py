"""
Redis Request State Store

Durable storage of request records in Redis, one JSON value per
(request_id, owner_id) with a TTL.

Responsibility:
    - create(): SET NX EX, so duplicate create attempts are no-ops
    - get(): GET + JSON decode (expired keys read as missing)
    - transition(): optimistic WATCH/MULTI/EXEC that refuses to overwrite
      terminal records and refreshes the TTL when applied
    - mark_requeued(): compare-and-set on updated_at for stale PENDING records
    - delete(): compensation after a failed enqueue

Architecture Notes:
    - Infrastructure Layer (external dependency on Redis)
    - Implements RequestStateStoreProtocol
    - Transition rules live in the RequestRecord entity; this class only makes
      the read-check-write atomic
    - RedisError propagates to callers (ingest -> 500, worker -> retry)

Storage Format:
    Key: "async_request:{owner_id}:{request_id}"
    Value: JSON of RequestRecord.to_dict()
    TTL: request_ttl_seconds, refreshed on every applied transition
"""

import json
import logging
from typing import Optional

from redis import Redis
from redis.exceptions import WatchError

from src.domain.async_requests import (
    ErrorDetail,
    RequestRecord,
    RequestStatus,
    StoredResult,
    TransitionOutcome,
)
from src.domain.async_requests.request_record import utc_now_iso

logger = logging.getLogger(__name__)

KEY_PREFIX = "async_request"


class RedisRequestStateStore:
    """
    Request state store backed by Redis.

    Args:
        redis: Redis client (decode_responses=True)
        ttl_seconds: Record TTL

    Examples:
        >>> store = RedisRequestStateStore(get_redis_client(), ttl_seconds=3600)
        >>> store.create(RequestRecord.new("req-1", "owner", "bundle.grant", {}))
        True
        >>> store.create(RequestRecord.new("req-1", "owner", "bundle.grant", {}))
        False
    """

    def __init__(self, redis: Redis, ttl_seconds: int = 3600) -> None:
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _get_key(request_id: str, owner_id: str) -> str:
        return f"{KEY_PREFIX}:{owner_id}:{request_id}"

    def create(self, record: RequestRecord) -> bool:
        key = self._get_key(record.request_id, record.owner_id)
        created = self.redis.set(
            key, json.dumps(record.to_dict()), nx=True, ex=self.ttl_seconds
        )
        if created:
            logger.debug(f"Created request record {key} (ttl={self.ttl_seconds}s)")
        return bool(created)

    def get(self, request_id: str, owner_id: str) -> Optional[RequestRecord]:
        raw = self.redis.get(self._get_key(request_id, owner_id))
        if not raw:
            return None
        return RequestRecord.from_dict(json.loads(raw))

    def transition(
        self,
        request_id: str,
        owner_id: str,
        new_status: RequestStatus,
        result: Optional[StoredResult] = None,
        error: Optional[ErrorDetail] = None,
    ) -> TransitionOutcome:
        key = self._get_key(request_id, owner_id)
        pipe = self.redis.pipeline()
        try:
            while True:
                try:
                    pipe.watch(key)
                    raw = pipe.get(key)
                    if not raw:
                        return TransitionOutcome.NOT_FOUND

                    record = RequestRecord.from_dict(json.loads(raw))
                    outcome = record.apply_transition(new_status, result, error)
                    if outcome == TransitionOutcome.REJECTED_TERMINAL:
                        logger.warning(
                            f"Anomaly: attempted {new_status.value} transition on "
                            f"terminal request {request_id} ({record.status.value})"
                        )
                        return outcome
                    if outcome != TransitionOutcome.APPLIED:
                        logger.warning(
                            f"Rejected transition {record.status.value} -> "
                            f"{new_status.value} for request {request_id}"
                        )
                        return outcome

                    pipe.multi()
                    pipe.set(key, json.dumps(record.to_dict()), ex=self.ttl_seconds)
                    pipe.execute()
                    logger.debug(f"Request {request_id} -> {new_status.value}")
                    return TransitionOutcome.APPLIED
                except WatchError:
                    logger.debug(f"Concurrent update on {key}, retrying transition")
        finally:
            pipe.reset()

    def mark_requeued(
        self, request_id: str, owner_id: str, expected_updated_at: str
    ) -> bool:
        key = self._get_key(request_id, owner_id)
        pipe = self.redis.pipeline()
        try:
            pipe.watch(key)
            raw = pipe.get(key)
            if not raw:
                return False
            record = RequestRecord.from_dict(json.loads(raw))
            if (
                record.status != RequestStatus.PENDING
                or record.updated_at != expected_updated_at
            ):
                return False
            record.updated_at = utc_now_iso()
            pipe.multi()
            pipe.set(key, json.dumps(record.to_dict()), ex=self.ttl_seconds)
            pipe.execute()
            return True
        except WatchError:
            # Someone else touched the record first
            return False
        finally:
            pipe.reset()

    def delete(self, request_id: str, owner_id: str) -> None:
        self.redis.delete(self._get_key(request_id, owner_id))
