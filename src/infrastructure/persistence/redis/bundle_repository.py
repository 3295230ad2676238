"""
Redis Bundle Repository

Owner bundles stored as one Redis hash per owner.

Storage Format:
    Key: "bundles:{owner_id}"
    Field: bundle_id
    Value: JSON of Bundle (bundleId, expiry, requestId)

Architecture Notes:
    - Infrastructure Layer (external dependency on Redis)
    - Implements BundleRepositoryProtocol
    - HSETNX makes grants conditional, HDEL makes removals idempotent
"""

import logging
from typing import Optional

from redis import Redis

from src.domain.bundles import Bundle

logger = logging.getLogger(__name__)


class RedisBundleRepository:
    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    @staticmethod
    def _get_key(owner_id: str) -> str:
        return f"bundles:{owner_id}"

    def list_bundles(self, owner_id: str) -> list[Bundle]:
        raw = self.redis.hgetall(self._get_key(owner_id)) or {}
        return [
            Bundle.model_validate_json(raw[bundle_id]) for bundle_id in sorted(raw)
        ]

    def get_bundle(self, owner_id: str, bundle_id: str) -> Optional[Bundle]:
        raw = self.redis.hget(self._get_key(owner_id), bundle_id)
        return Bundle.model_validate_json(raw) if raw else None

    def add_bundle(self, owner_id: str, bundle: Bundle) -> bool:
        added = self.redis.hsetnx(
            self._get_key(owner_id), bundle.bundle_id, bundle.to_storage()
        )
        return bool(added)

    def remove_bundle(self, owner_id: str, bundle_id: str) -> bool:
        return bool(self.redis.hdel(self._get_key(owner_id), bundle_id))

    def remove_all(self, owner_id: str) -> int:
        key = self._get_key(owner_id)
        pipe = self.redis.pipeline()
        pipe.hlen(key)
        pipe.delete(key)
        count, _ = pipe.execute()
        logger.debug(f"Removed {count} bundles from {key}")
        return int(count or 0)
