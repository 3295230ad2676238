"""
Infrastructure Layer - External Dependencies

Implements the Application Layer ports against real technology.

Architecture:
    - Implements Application Layer protocols (Dependency Inversion)
    - Depends on external libraries (redis, celery, httpx, PyJWT)
    - No business logic (only technical implementations)

Modules:
    - persistence: Redis and in-process stores (request records, bundles,
      receipts, dead letters)
    - queue: Celery work queue adapter
    - downstream: VAT API client (httpx)
    - auth: Bearer token verification (PyJWT) and subject hashing
    - service_factory: Process-wide wiring shared by FastAPI and Celery

Usage:
    >>> from src.infrastructure.persistence.redis import RedisRequestStateStore
    >>> from src.infrastructure.service_factory import build_ingest_handler
"""
