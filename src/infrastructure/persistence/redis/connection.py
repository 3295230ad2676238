"""
Shared Redis Connection.

One process-wide ConnectionPool for everything that lives in Redis: request
records, owner bundles, VAT receipts and dead-lettered queue messages.

Responsibility:
    - Lazily build the pool from AsyncRequestConfig (first caller wins)
    - Confirm the server answers PING before handing out a client
    - Report reachability for GET /health
    - Release the pool on API shutdown

Connection Rules:
    - Pool size REDIS_MAX_CONNECTIONS, socket and connect timeout REDIS_TIMEOUT
    - Up to REDIS_RETRY_ATTEMPTS PINGs, sleeping 1s, 2s, 4s... between them
    - decode_responses=True: stores read and write str, values are JSON text

Error Handling:
    - ConnectionError / TimeoutError on PING are retried
    - RedisError once attempts run out (ingest answers 500, workers retry)
    - health_check() never raises
"""

import logging
import threading
import time
from typing import Optional

from redis import ConnectionPool, Redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from src.shared.config import AsyncRequestConfig, get_config

logger = logging.getLogger(__name__)

_redis_pool: Optional[ConnectionPool] = None
_pool_lock = threading.Lock()

PING_BACKOFF_BASE_SECONDS = 1


def _build_pool(config: AsyncRequestConfig) -> ConnectionPool:
    logger.info(
        f"Opening Redis pool {config.redis_host}:{config.redis_port}/{config.redis_db} "
        f"(max_connections={config.redis_max_connections}, "
        f"timeout={config.redis_timeout}s)"
    )
    return ConnectionPool(
        host=config.redis_host,
        port=config.redis_port,
        db=config.redis_db,
        max_connections=config.redis_max_connections,
        socket_timeout=config.redis_timeout,
        socket_connect_timeout=config.redis_timeout,
        socket_keepalive=True,
        decode_responses=True,
    )


def _ping_until_ready(client: Redis, attempts: int) -> None:
    """
    PING with exponential backoff.

    Raises:
        RedisError: No successful PING within `attempts` tries
    """
    failure: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            client.ping()
            logger.debug(f"Redis answered PING on attempt {attempt}")
            return
        except (ConnectionError, TimeoutError) as e:
            failure = e
            if attempt == attempts:
                break
            delay = PING_BACKOFF_BASE_SECONDS * 2 ** (attempt - 1)
            logger.warning(
                f"Redis PING failed ({attempt}/{attempts}): {e}; next try in {delay}s"
            )
            time.sleep(delay)

    logger.error(f"Redis unreachable after {attempts} PING attempts: {failure}")
    raise RedisError(
        f"Redis unreachable after {attempts} attempts. Last error: {failure}"
    )


def get_redis_client(config: Optional[AsyncRequestConfig] = None) -> Redis:
    """
    Client on the shared pool, verified with PING.

    Args:
        config: Connection settings (default: get_config()). Only the first
            call that builds the pool uses them; later calls reuse the pool.

    Raises:
        RedisError: Redis did not answer within the configured attempts

    Examples:
        >>> store = RedisRequestStateStore(get_redis_client(), ttl_seconds=3600)
    """
    global _redis_pool

    config = config or get_config()
    if _redis_pool is None:
        with _pool_lock:
            if _redis_pool is None:
                _redis_pool = _build_pool(config)

    client = Redis(connection_pool=_redis_pool)
    _ping_until_ready(client, config.redis_retry_attempts)
    return client


def health_check(config: Optional[AsyncRequestConfig] = None) -> bool:
    """True when Redis answers PING; failures are logged, never raised."""
    try:
        client = get_redis_client(config)
        if client.ping():
            return True
        logger.warning("Redis health check: PING returned a falsy reply")
        return False
    except RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        return False


def close_connections() -> None:
    """Disconnect the shared pool; the next get_redis_client() opens a new one."""
    global _redis_pool

    with _pool_lock:
        if _redis_pool is None:
            logger.debug("No Redis pool to close")
            return
        try:
            _redis_pool.disconnect()
        finally:
            _redis_pool = None
            logger.info("Redis pool closed")
