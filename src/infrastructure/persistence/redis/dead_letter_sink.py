"""
Redis Dead-Letter Sink

Keeps messages that exhausted their retries in a Redis list for manual
inspection and replay.

Storage Format:
    Key: dead_letter_key (default "dead_letter:async_requests")
    Entries (newest first): JSON {message, error, attempts, dead_lettered_at}
    Length capped at max_entries (oldest dropped)
"""

import json
import logging
from typing import Any

from redis import Redis

from src.application.models import QueueMessage
from src.domain.async_requests.request_record import utc_now_iso

logger = logging.getLogger(__name__)


class RedisDeadLetterSink:
    def __init__(self, redis: Redis, key: str, max_entries: int = 10_000) -> None:
        self.redis = redis
        self.key = key
        self.max_entries = max_entries

    def push(self, message: QueueMessage, error: str, attempts: int) -> None:
        # The payload may carry a downstream access token; keep it out of the DLQ
        payload = {k: v for k, v in message.payload.items() if k != "accessToken"}
        entry = {
            "message": {**message.model_dump(), "payload": payload},
            "error": error,
            "attempts": attempts,
            "dead_lettered_at": utc_now_iso(),
        }
        pipe = self.redis.pipeline()
        pipe.lpush(self.key, json.dumps(entry))
        pipe.ltrim(self.key, 0, self.max_entries - 1)
        pipe.execute()
        logger.error(
            f"Dead-lettered request {message.request_id} after {attempts} attempts: {error}"
        )

    def list_entries(self, limit: int = 100) -> list[dict[str, Any]]:
        return [json.loads(raw) for raw in self.redis.lrange(self.key, 0, limit - 1)]

    def count(self) -> int:
        return int(self.redis.llen(self.key))
