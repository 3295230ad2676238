"""
Redis Infrastructure Module

Redis-based implementations of the request state store, domain
repositories and dead-letter sink.

Exports:
    - RedisRequestStateStore: Request records (SET NX, WATCH/MULTI)
    - RedisBundleRepository: Owner bundles (one hash per owner)
    - RedisReceiptRepository: VAT receipts (multi-year TTL)
    - RedisDeadLetterSink: Exhausted messages (Redis list)
    - get_redis_client: Get Redis client with connection pooling
    - health_check: Check Redis health with PING test
    - close_connections: Close all Redis connections
"""

from .bundle_repository import RedisBundleRepository
from .connection import close_connections, get_redis_client, health_check
from .dead_letter_sink import RedisDeadLetterSink
from .receipt_repository import RedisReceiptRepository
from .request_state_store import RedisRequestStateStore

__all__ = [
    "RedisRequestStateStore",
    "RedisBundleRepository",
    "RedisReceiptRepository",
    "RedisDeadLetterSink",
    "get_redis_client",
    "health_check",
    "close_connections",
]
