"""
Redis Receipt Repository

Permanent storage of VAT receipts with a multi-year TTL, separate from the
short-lived request records.

Storage Format:
    "receipt:{owner_id}:{receipt_id}"          -> JSON of Receipt   (TTL)
    "receipt_by_request:{owner_id}:{request_id}" -> receipt_id      (TTL, SET NX)
    "receipts:{owner_id}"                       -> ZSET receipt_id by submit time

Architecture Notes:
    - Infrastructure Layer (external dependency on Redis)
    - Implements ReceiptRepositoryProtocol
    - The request index is claimed with SET NX before the receipt is written,
      so concurrent workers for one request keep a single receipt
"""

import logging
from datetime import datetime
from typing import Optional

from redis import Redis

from src.domain.vat import Receipt

logger = logging.getLogger(__name__)


class RedisReceiptRepository:
    def __init__(self, redis: Redis, ttl_seconds: int) -> None:
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _get_receipt_key(owner_id: str, receipt_id: str) -> str:
        return f"receipt:{owner_id}:{receipt_id}"

    @staticmethod
    def _get_request_index_key(owner_id: str, request_id: str) -> str:
        return f"receipt_by_request:{owner_id}:{request_id}"

    @staticmethod
    def _get_list_key(owner_id: str) -> str:
        return f"receipts:{owner_id}"

    def save(self, owner_id: str, receipt: Receipt) -> Receipt:
        index_key = self._get_request_index_key(owner_id, receipt.request_id)
        claimed = self.redis.set(
            index_key, receipt.receipt_id, nx=True, ex=self.ttl_seconds
        )
        if not claimed:
            existing = self.get_by_request_id(owner_id, receipt.request_id)
            if existing is not None:
                logger.info(
                    f"Receipt for request {receipt.request_id} already stored: "
                    f"{existing.receipt_id}"
                )
                return existing
            # Index present but receipt body missing: take the index over
            self.redis.set(index_key, receipt.receipt_id, ex=self.ttl_seconds)

        submitted = datetime.fromisoformat(receipt.submitted_at).timestamp()
        list_key = self._get_list_key(owner_id)
        pipe = self.redis.pipeline()
        pipe.setex(
            self._get_receipt_key(owner_id, receipt.receipt_id),
            self.ttl_seconds,
            receipt.model_dump_json(by_alias=True),
        )
        pipe.zadd(list_key, {receipt.receipt_id: submitted})
        pipe.expire(list_key, self.ttl_seconds)
        pipe.execute()
        logger.info(
            f"Stored receipt {receipt.receipt_id} (ttl={self.ttl_seconds}s)"
        )
        return receipt

    def get(self, owner_id: str, receipt_id: str) -> Optional[Receipt]:
        raw = self.redis.get(self._get_receipt_key(owner_id, receipt_id))
        return Receipt.model_validate_json(raw) if raw else None

    def get_by_request_id(self, owner_id: str, request_id: str) -> Optional[Receipt]:
        receipt_id = self.redis.get(self._get_request_index_key(owner_id, request_id))
        if not receipt_id:
            return None
        return self.get(owner_id, receipt_id)

    def list_receipts(self, owner_id: str) -> list[Receipt]:
        receipt_ids = self.redis.zrevrange(self._get_list_key(owner_id), 0, -1)
        if not receipt_ids:
            return []
        keys = [self._get_receipt_key(owner_id, rid) for rid in receipt_ids]
        return [Receipt.model_validate_json(raw) for raw in self.redis.mget(keys) if raw]
