"""
Pytest Configuration and Shared Fixtures

This module contains pytest configuration and shared fixtures used across
all test suites (unit, integration).

Fixtures:
    - redis_client: Redis client for integration tests (skips when Redis is down)
    - clean_redis: Cleans Redis database before/after tests
    - test_client: FastAPI TestClient wired to the in-memory backend
    - make_token: Signs bearer tokens accepted by the test configuration

Architecture Notes:
    - The suite runs with STATE_STORE_BACKEND=memory, so Celery tasks run
      eagerly and no broker is needed for unit tests
    - Environment is set before any src import (config is read at import time
      by the Celery app)
    - Redis cleanup ensures test isolation for integration tests

Usage:
    Tests automatically have access to these fixtures by name:

    def test_something(test_client, make_token):
        response = test_client.get("/api/v1/bundle", headers=make_token.headers())
        assert response.status_code == 200
"""

import logging
import os
import time
from typing import Generator

os.environ.setdefault("STATE_STORE_BACKEND", "memory")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-the-unit-test-suite")
os.environ.setdefault("USER_SUB_HASH_SALT", "test-salt")

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from redis.exceptions import RedisError  # noqa: E402

# Import Redis connection
from src.infrastructure.persistence.redis.connection import (  # noqa: E402
    close_connections,
    get_redis_client,
)

# Import FastAPI app
from src.api.main import create_app  # noqa: E402
from src.infrastructure import service_factory  # noqa: E402
from src.shared.config import AsyncRequestConfig, get_config  # noqa: E402

# Configure logger for tests
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ============================================================================
# REDIS FIXTURES
# ============================================================================


@pytest.fixture(scope="session")
def redis_client():
    """
    Provide Redis client for integration tests.

    Scope: session (shared across all tests in session)

    Yields:
        redis.Redis: Redis client instance (db 15, never the service db)

    Note:
        Skips the requesting test when Redis is not reachable.
        Run `docker-compose up -d redis` to enable these tests.
    """
    config = AsyncRequestConfig(
        redis_host=os.getenv("REDIS_HOST", "localhost"),
        redis_db=15,
        redis_retry_attempts=1,
    )
    try:
        client = get_redis_client(config)
    except RedisError as e:
        close_connections()
        pytest.skip(f"Redis not available: {e}")
    yield client
    # Cleanup after all tests
    close_connections()


@pytest.fixture(scope="function")
def clean_redis(redis_client):
    """
    Clean Redis database before and after each test.

    Yields:
        redis.Redis: Clean Redis client
    """
    redis_client.flushdb()
    logger.info("Redis database flushed (before test)")

    yield redis_client

    redis_client.flushdb()
    logger.info("Redis database flushed (after test)")


# ============================================================================
# FASTAPI FIXTURES
# ============================================================================


@pytest.fixture
def test_client() -> Generator[TestClient, None, None]:
    """
    Provide FastAPI TestClient over fresh in-memory services.

    Every test gets empty stores: service factory caches are cleared before
    and after, so records never leak between tests.

    Yields:
        TestClient: FastAPI test client
    """
    get_config.cache_clear()
    service_factory.reset_services()
    app = create_app()
    with TestClient(app) as client:
        logger.info("FastAPI TestClient created")
        yield client
    service_factory.reset_services()
    logger.info("FastAPI TestClient closed")


class TokenFactory:
    """Signs HS256 bearer tokens with the test suite secret."""

    def __init__(self, secret: str) -> None:
        self.secret = secret

    def __call__(self, sub: str = "user-1", ttl_seconds: int = 300, **claims) -> str:
        payload = {"sub": sub, "exp": int(time.time()) + ttl_seconds, **claims}
        return jwt.encode(payload, self.secret, algorithm="HS256")

    def headers(self, sub: str = "user-1", **claims) -> dict[str, str]:
        return {"Authorization": f"Bearer {self(sub, **claims)}"}


@pytest.fixture
def make_token() -> TokenFactory:
    """Token factory for the configured JWT_SECRET."""
    return TokenFactory(os.environ["JWT_SECRET"])


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """
    Pytest configuration hook.

    Registers custom markers for test categorization.

    Markers:
        - integration: Integration tests (may require external services)
        - unit: Unit tests (no external dependencies)
        - e2e: End-to-end tests through the HTTP API
        - slow: Slow tests (>1s execution time)

    Usage:
        # Run all except integration:
        # pytest -m "not integration"
    """
    config.addinivalue_line(
        "markers", "integration: Integration tests (may require external services)"
    )
    config.addinivalue_line(
        "markers", "unit: Unit tests (no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests through the HTTP API"
    )
    config.addinivalue_line(
        "markers", "slow: Slow tests (>1s execution time)"
    )


def pytest_collection_modifyitems(config, items):
    """
    Pytest collection hook.

    Automatically adds 'slow' marker to integration tests.
    """
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(pytest.mark.slow)
