"""
Common fixtures for unit tests.

Provides deterministic collaborators for the async request flow:
- FakeClock: monotonic clock whose sleep() advances time instantly
- RecordingQueue: work queue that records messages (and can run a worker inline)
- In-memory request state store and domain repositories
"""

from typing import Optional

import pytest

from src.application.models import QueueMessage
from src.application.services.worker_handler import WorkerHandler
from src.infrastructure.persistence.memory import (
    InMemoryBundleRepository,
    InMemoryReceiptRepository,
    InMemoryRequestStateStore,
)
from src.shared.config import AsyncRequestConfig


class FakeClock:
    """Monotonic clock driven by the test; sleep() just moves time forward."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingQueue:
    """
    Work queue double.

    Records every enqueued message. When `worker` is set, the message is
    handled inline (like Celery eager mode); `fail_with` makes enqueue raise.
    """

    def __init__(self) -> None:
        self.messages: list[QueueMessage] = []
        self.worker: Optional[WorkerHandler] = None
        self.fail_with: Optional[Exception] = None

    def enqueue(self, message: QueueMessage) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.messages.append(message)
        if self.worker is not None:
            self.worker.handle(message)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def memory_store(fake_clock) -> InMemoryRequestStateStore:
    """Request state store with a 1h TTL on the fake clock."""
    return InMemoryRequestStateStore(ttl_seconds=3600, clock=fake_clock.monotonic)


@pytest.fixture
def bundle_repository() -> InMemoryBundleRepository:
    return InMemoryBundleRepository()


@pytest.fixture
def receipt_repository() -> InMemoryReceiptRepository:
    return InMemoryReceiptRepository()


@pytest.fixture
def async_config() -> AsyncRequestConfig:
    """Configuration used by handler tests (memory backend, 100ms polling)."""
    return AsyncRequestConfig(
        state_store_backend="memory",
        max_wait_ms=25_000,
        default_wait_ms=0,
        poll_interval_ms=100,
        stale_pending_seconds=60,
    )
