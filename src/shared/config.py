"""
Application Configuration

Explicit configuration struct injected into the state store, work queue,
ingest handler and worker handler constructors.

Responsibility:
    - Gather every tunable (Redis, TTLs, wait budget, retry policy, auth,
      downstream API) into one immutable object
    - Build it from environment variables (.env supported via python-dotenv)

Architecture Notes:
    - Part of Shared layer (used by API, Application and Infrastructure)
    - Tests construct AsyncRequestConfig(...) directly instead of patching env
    - get_config() caches the env-built instance for FastAPI and Celery

Environment Variables:
    REDIS_HOST, REDIS_PORT, REDIS_DB, REDIS_MAX_CONNECTIONS, REDIS_TIMEOUT,
    REDIS_RETRY_ATTEMPTS, STATE_STORE_BACKEND, REQUEST_TTL_SECONDS,
    RECEIPT_TTL_DAYS, MAX_WAIT_MS, DEFAULT_WAIT_MS, POLL_INTERVAL_MS,
    STALE_PENDING_SECONDS, CELERY_BROKER_URL, CELERY_RESULT_BACKEND,
    TASK_MAX_RETRIES, RETRY_BACKOFF_BASE, RETRY_BACKOFF_MAX, DEAD_LETTER_KEY,
    JWT_SECRET, JWT_ALGORITHM, JWT_AUDIENCE, USER_SUB_HASH_SALT,
    HMRC_BASE_URL, HMRC_TIMEOUT_SECONDS, BUNDLE_CATALOG_PATH
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AsyncRequestConfig:
    """
    Immutable configuration for the async request service.

    Attributes:
        redis_host: Redis hostname
        redis_port: Redis port
        redis_db: Redis database number for request records and domain data
        redis_max_connections: Connection pool size
        redis_timeout: Socket timeout in seconds
        redis_retry_attempts: PING attempts when opening the pool
        state_store_backend: "redis" (production) or "memory" (single process)
        request_ttl_seconds: TTL of request records (default 1h)
        receipt_ttl_days: TTL of VAT receipts (default 2555 days, ~7 years)
        max_wait_ms: Hard cap on the caller wait budget
        default_wait_ms: Wait budget when x-wait-time-ms is absent
        poll_interval_ms: Fixed interval between store reads in the wait loop
        stale_pending_seconds: Age after which a PENDING record is re-enqueued
        celery_broker_url: Celery broker URL
        celery_result_backend: Celery result backend URL
        task_max_retries: Retries before a message is dead-lettered
        retry_backoff_base: First retry delay in seconds
        retry_backoff_max: Maximum retry delay in seconds
        dead_letter_key: Redis list holding dead-lettered messages
        jwt_secret: Shared secret for bearer token verification
        jwt_algorithm: JWT signing algorithm
        jwt_audience: Expected "aud" claim (None disables the check)
        user_sub_hash_salt: Salt for owner id hashing
        hmrc_base_url: Base URL of the VAT API
        hmrc_timeout_seconds: Downstream HTTP timeout
        bundle_catalog_path: Catalog TOML override (None uses packaged catalog)
        vendor_product_name: Gov-Vendor-Product-Name sent to the tax authority
        vendor_version: Version reported in Gov-Vendor-Version
        server_public_ip: Gov-Vendor-Public-IP (None falls back to the client IP)
    """

    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_max_connections: int = 10
    redis_timeout: int = 5
    redis_retry_attempts: int = 3
    state_store_backend: str = "redis"
    request_ttl_seconds: int = 3600
    receipt_ttl_days: int = 2555
    max_wait_ms: int = 25_000
    default_wait_ms: int = 0
    poll_interval_ms: int = 250
    stale_pending_seconds: int = 60
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"
    task_max_retries: int = 5
    retry_backoff_base: int = 2
    retry_backoff_max: int = 900
    dead_letter_key: str = "dead_letter:async_requests"
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = None
    user_sub_hash_salt: str = "change-me"
    hmrc_base_url: str = "https://test-api.service.hmrc.gov.uk"
    hmrc_timeout_seconds: float = 20.0
    bundle_catalog_path: Optional[str] = None
    vendor_product_name: str = "vatsubmit"
    vendor_version: str = "0.1.0"
    server_public_ip: Optional[str] = None

    def __post_init__(self) -> None:
        if self.state_store_backend not in ("redis", "memory"):
            raise ValueError(
                f"STATE_STORE_BACKEND must be 'redis' or 'memory', "
                f"got {self.state_store_backend!r}"
            )
        if self.max_wait_ms < 0 or self.default_wait_ms < 0:
            raise ValueError("Wait budgets must be non-negative")
        if self.poll_interval_ms <= 0:
            raise ValueError("POLL_INTERVAL_MS must be positive")

    @property
    def receipt_ttl_seconds(self) -> int:
        return self.receipt_ttl_days * 24 * 60 * 60

    @classmethod
    def from_env(cls) -> "AsyncRequestConfig":
        """
        Build configuration from environment variables.

        Loads a .env file first (if present). Unset variables fall back to
        the dataclass defaults.

        Raises:
            ValueError: If a numeric variable cannot be parsed or a value is
                out of range
        """
        load_dotenv()
        defaults = cls()

        def _int(name: str, default: int) -> int:
            return int(os.getenv(name, str(default)))

        return cls(
            redis_host=os.getenv("REDIS_HOST", defaults.redis_host),
            redis_port=_int("REDIS_PORT", defaults.redis_port),
            redis_db=_int("REDIS_DB", defaults.redis_db),
            redis_max_connections=_int(
                "REDIS_MAX_CONNECTIONS", defaults.redis_max_connections
            ),
            redis_timeout=_int("REDIS_TIMEOUT", defaults.redis_timeout),
            redis_retry_attempts=_int(
                "REDIS_RETRY_ATTEMPTS", defaults.redis_retry_attempts
            ),
            state_store_backend=os.getenv(
                "STATE_STORE_BACKEND", defaults.state_store_backend
            ).lower(),
            request_ttl_seconds=_int(
                "REQUEST_TTL_SECONDS", defaults.request_ttl_seconds
            ),
            receipt_ttl_days=_int("RECEIPT_TTL_DAYS", defaults.receipt_ttl_days),
            max_wait_ms=_int("MAX_WAIT_MS", defaults.max_wait_ms),
            default_wait_ms=_int("DEFAULT_WAIT_MS", defaults.default_wait_ms),
            poll_interval_ms=_int("POLL_INTERVAL_MS", defaults.poll_interval_ms),
            stale_pending_seconds=_int(
                "STALE_PENDING_SECONDS", defaults.stale_pending_seconds
            ),
            celery_broker_url=os.getenv(
                "CELERY_BROKER_URL", defaults.celery_broker_url
            ),
            celery_result_backend=os.getenv(
                "CELERY_RESULT_BACKEND", defaults.celery_result_backend
            ),
            task_max_retries=_int("TASK_MAX_RETRIES", defaults.task_max_retries),
            retry_backoff_base=_int("RETRY_BACKOFF_BASE", defaults.retry_backoff_base),
            retry_backoff_max=_int("RETRY_BACKOFF_MAX", defaults.retry_backoff_max),
            dead_letter_key=os.getenv("DEAD_LETTER_KEY", defaults.dead_letter_key),
            jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", defaults.jwt_algorithm),
            jwt_audience=os.getenv("JWT_AUDIENCE") or None,
            user_sub_hash_salt=os.getenv(
                "USER_SUB_HASH_SALT", defaults.user_sub_hash_salt
            ),
            hmrc_base_url=os.getenv("HMRC_BASE_URL", defaults.hmrc_base_url),
            hmrc_timeout_seconds=float(
                os.getenv("HMRC_TIMEOUT_SECONDS", str(defaults.hmrc_timeout_seconds))
            ),
            bundle_catalog_path=os.getenv("BUNDLE_CATALOG_PATH") or None,
            vendor_product_name=os.getenv(
                "VENDOR_PRODUCT_NAME", defaults.vendor_product_name
            ),
            vendor_version=os.getenv("VENDOR_VERSION", defaults.vendor_version),
            server_public_ip=os.getenv("SERVER_PUBLIC_IP") or None,
        )


@lru_cache(maxsize=1)
def get_config() -> AsyncRequestConfig:
    """
    Process-wide configuration built from the environment (cached).

    Call get_config.cache_clear() after changing environment variables.
    """
    config = AsyncRequestConfig.from_env()
    logger.info(
        f"Configuration loaded: backend={config.state_store_backend}, "
        f"redis={config.redis_host}:{config.redis_port}/{config.redis_db}, "
        f"max_wait_ms={config.max_wait_ms}, poll_interval_ms={config.poll_interval_ms}"
    )
    return config
