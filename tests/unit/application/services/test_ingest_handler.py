"""
Tests for IngestHandler (async request front door).

Covers:
- Scenario A: worker finishes within the wait budget -> stored outcome inline
- Scenario B: budget exhausted -> deferred (202), single enqueue
- Scenario D: terminal record replayed, never re-enqueued
- Wait budget defaulting and capping
- Request id generation
- Precheck runs only for new request ids
- Enqueue failure removes the PENDING record
- Stale PENDING records are re-enqueued once (token from the re-poll)
- Access tokens stay out of the stored record
- Scenario D: concurrent first calls share one execution
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from src.application.commands.async_commands import (
    GRANT_BUNDLE,
    GrantBundleCommand,
    SubmitVatReturnCommand,
)
from src.application.models import OperationOutcome, QueueMessage
from src.application.services.ingest_handler import IngestHandler
from src.application.services.worker_handler import WorkerHandler
from src.domain.async_requests import (
    ErrorDetail,
    RequestRecord,
    RequestStatus,
    StoredResult,
)
from src.domain.shared.exceptions import BundleNotFoundError
from src.shared.config import AsyncRequestConfig

OWNER = "owner-1"


@pytest.fixture
def command() -> GrantBundleCommand:
    return GrantBundleCommand(bundle_id="test")


@pytest.fixture
def vat_command() -> SubmitVatReturnCommand:
    return SubmitVatReturnCommand(
        vat_number="123456789", period_key="24a1", vat_due="100.50", access_token="hmrc-token"
    )


@pytest.fixture
def handler(memory_store, recording_queue, async_config, fake_clock) -> IngestHandler:
    return IngestHandler(
        memory_store,
        recording_queue,
        async_config,
        clock=fake_clock.monotonic,
        sleep=fake_clock.sleep,
    )


class CompletingWorker:
    """Worker double that completes the record when handled."""

    def __init__(self, store, status_code: int = 201, body: dict = None) -> None:
        self.store = store
        self.status_code = status_code
        self.body = body or {"status": "granted"}

    def handle(self, message: QueueMessage) -> None:
        self.store.transition(message.request_id, message.owner_id, RequestStatus.PROCESSING)
        self.store.transition(
            message.request_id,
            message.owner_id,
            RequestStatus.COMPLETED,
            result=StoredResult(self.status_code, self.body),
        )


# ============================================================================
# SCENARIO A / B - FIRST CALL
# ============================================================================


def test_fast_worker_returns_stored_outcome_inline(
    handler, memory_store, recording_queue, command
):
    """
    Test scenario A: worker completes before the budget runs out.

    Verifies:
    - Outcome is not deferred
    - Status/body are the stored result
    - Exactly one message enqueued
    """
    # Arrange
    recording_queue.worker = CompletingWorker(memory_store)

    # Act
    outcome = handler.ingest(OWNER, command, request_id="req-a", wait_time_ms=5000)

    # Assert
    assert outcome.deferred is False
    assert outcome.replayed is False
    assert outcome.status_code == 201
    assert outcome.body == {"status": "granted"}
    assert len(recording_queue.messages) == 1
    assert recording_queue.messages[0].request_id == "req-a"


def test_budget_exhausted_defers(handler, memory_store, recording_queue, fake_clock, command):
    """
    Test scenario B: no worker progress within the budget.

    Verifies:
    - Outcome deferred (202) with the request id
    - Record stays PENDING
    - Wait loop slept for about the whole budget, in poll_interval steps
    """
    outcome = handler.ingest(OWNER, command, request_id="req-b", wait_time_ms=1000)

    assert outcome.deferred is True
    assert outcome.status_code == 202
    assert outcome.body == {"message": "Request accepted for processing", "requestId": "req-b"}
    assert memory_store.get("req-b", OWNER).status == RequestStatus.PENDING
    assert len(recording_queue.messages) == 1
    assert sum(fake_clock.sleeps) == pytest.approx(1.0)
    assert max(fake_clock.sleeps) <= 0.1 + 1e-9


def test_zero_budget_returns_immediately(handler, recording_queue, fake_clock, command):
    """Test x-wait-time-ms: 0 defers without sleeping (fire and forget)."""
    outcome = handler.ingest(OWNER, command, request_id="req-0", wait_time_ms=0)

    assert outcome.deferred is True
    assert fake_clock.sleeps == []
    assert len(recording_queue.messages) == 1


def test_missing_budget_uses_default(handler, fake_clock, command):
    """Test absent x-wait-time-ms uses default_wait_ms (0 in the test config)."""
    outcome = handler.ingest(OWNER, command, request_id="req-d")

    assert outcome.deferred is True
    assert fake_clock.sleeps == []


def test_budget_is_capped(memory_store, recording_queue, fake_clock, command):
    """Test a budget above max_wait_ms waits only max_wait_ms."""
    config = AsyncRequestConfig(
        state_store_backend="memory", max_wait_ms=500, poll_interval_ms=100
    )
    handler = IngestHandler(
        memory_store, recording_queue, config, clock=fake_clock.monotonic, sleep=fake_clock.sleep
    )

    handler.ingest(OWNER, command, request_id="req-cap", wait_time_ms=60_000)

    assert sum(fake_clock.sleeps) == pytest.approx(0.5)


def test_request_id_generated_when_absent(handler, recording_queue, command):
    """Test a UUID request id is generated and used for the record and message."""
    outcome = handler.ingest(OWNER, command, wait_time_ms=0)

    assert len(outcome.request_id) == 36
    assert recording_queue.messages[0].request_id == outcome.request_id


# ============================================================================
# SCENARIO B/D - RE-POLLS AND REPLAYS
# ============================================================================


def test_repoll_while_pending_does_not_enqueue_again(
    handler, recording_queue, command
):
    """Test re-polling a non-terminal request never enqueues a second message."""
    handler.ingest(OWNER, command, request_id="req-p", wait_time_ms=0)

    second = handler.ingest(OWNER, command, request_id="req-p", wait_time_ms=300)

    assert second.deferred is True
    assert len(recording_queue.messages) == 1


def test_repoll_after_completion_returns_result(
    handler, memory_store, recording_queue, command
):
    """Test scenario B re-poll: worker finished between polls -> 201."""
    handler.ingest(OWNER, command, request_id="req-r", wait_time_ms=0)
    CompletingWorker(memory_store).handle(recording_queue.messages[0])

    outcome = handler.ingest(OWNER, command, request_id="req-r", wait_time_ms=0)

    assert outcome.status_code == 201
    assert outcome.replayed is True
    assert len(recording_queue.messages) == 1


def test_terminal_failure_is_replayed_verbatim(
    handler, memory_store, recording_queue, command
):
    """
    Test scenario D: stored failure is replayed on every later call.

    Verifies:
    - Same status and body on two replays
    - No enqueue, no waiting
    """
    # Arrange
    record = RequestRecord.new("req-f", OWNER, command.operation, command.to_payload())
    memory_store.create(record)
    memory_store.transition(
        "req-f",
        OWNER,
        RequestStatus.FAILED,
        error=ErrorDetail(403, "cap_reached", "Bundle entitlement cap reached"),
    )

    # Act
    first = handler.ingest(OWNER, command, request_id="req-f", wait_time_ms=5000)
    second = handler.ingest(OWNER, command, request_id="req-f", wait_time_ms=5000)

    # Assert
    assert first.status_code == second.status_code == 403
    assert first.body == second.body == {
        "error": "cap_reached",
        "message": "Bundle entitlement cap reached",
    }
    assert recording_queue.messages == []


def test_records_are_scoped_by_owner(handler, memory_store, recording_queue, command):
    """Test the same request id from another owner is a different request."""
    recording_queue.worker = CompletingWorker(memory_store)
    handler.ingest(OWNER, command, request_id="shared", wait_time_ms=1000)

    handler.ingest("owner-2", command, request_id="shared", wait_time_ms=1000)

    assert len(recording_queue.messages) == 2
    assert {m.owner_id for m in recording_queue.messages} == {OWNER, "owner-2"}


def test_initial_request_hint_skips_lookup(handler, memory_store, recording_queue, command):
    """Test x-initial-request: a wrong hint still never enqueues twice."""
    handler.ingest(OWNER, command, request_id="req-h", wait_time_ms=0)

    outcome = handler.ingest(
        OWNER, command, request_id="req-h", wait_time_ms=0, initial_request=True
    )

    assert outcome.deferred is True
    assert len(recording_queue.messages) == 1


# ============================================================================
# PRECHECK / FAILURES
# ============================================================================


def test_precheck_failure_writes_nothing(handler, memory_store, recording_queue, command):
    """Test a failing precheck propagates with no record and no message."""

    def precheck():
        raise BundleNotFoundError("Bundle not found", bundle_id="test")

    with pytest.raises(BundleNotFoundError):
        handler.ingest(OWNER, command, request_id="req-x", precheck=precheck)

    assert memory_store.get("req-x", OWNER) is None
    assert recording_queue.messages == []


def test_precheck_skipped_for_existing_request(handler, memory_store, recording_queue, command):
    """Test re-polling a known request id never re-runs the precheck."""
    recording_queue.worker = CompletingWorker(memory_store, 204, {"status": "removed"})
    handler.ingest(OWNER, command, request_id="req-y", wait_time_ms=1000)
    calls = []

    outcome = handler.ingest(
        OWNER, command, request_id="req-y", precheck=lambda: calls.append(1)
    )

    assert calls == []
    assert outcome.status_code == 204


def test_wrong_initial_request_hint_with_precheck_replays_stored_answer(
    handler, memory_store, recording_queue, command
):
    """
    Test a repeated request wrongly flagged as initial.

    Verifies:
    - The stored 204 is replayed instead of the precheck's not-found error
    - Nothing is enqueued again
    """
    recording_queue.worker = CompletingWorker(memory_store, 204, {"status": "removed"})
    handler.ingest(OWNER, command, request_id="req-w", wait_time_ms=1000)

    def precheck():
        raise BundleNotFoundError("Bundle not found", bundle_id="test")

    outcome = handler.ingest(
        OWNER,
        command,
        request_id="req-w",
        wait_time_ms=0,
        initial_request=True,
        precheck=precheck,
    )

    assert outcome.replayed is True
    assert outcome.status_code == 204
    assert len(recording_queue.messages) == 1


def test_enqueue_failure_removes_record(handler, memory_store, recording_queue, command):
    """
    Test the queue being unavailable.

    Verifies:
    - Broker error propagates (rendered as 500 by the API)
    - The PENDING record is deleted, so a retry with the same id starts fresh
    """
    recording_queue.fail_with = ConnectionError("broker down")

    with pytest.raises(ConnectionError):
        handler.ingest(OWNER, command, request_id="req-q", wait_time_ms=0)

    assert memory_store.get("req-q", OWNER) is None

    recording_queue.fail_with = None
    outcome = handler.ingest(OWNER, command, request_id="req-q", wait_time_ms=0)
    assert outcome.deferred is True
    assert len(recording_queue.messages) == 1


def test_stale_pending_record_is_requeued_once(
    memory_store, recording_queue, async_config, fake_clock, command
):
    """
    Test recovery of a record orphaned between create and enqueue.

    Verifies:
    - PENDING older than stale_pending_seconds is re-enqueued on re-poll
    - The next re-poll does not enqueue again (updated_at was refreshed)
    """
    # Arrange
    record = RequestRecord.new("req-s", OWNER, command.operation, command.to_payload())
    memory_store.create(record)
    later = datetime.fromisoformat(record.updated_at) + timedelta(seconds=120)
    handler = IngestHandler(
        memory_store,
        recording_queue,
        async_config,
        clock=fake_clock.monotonic,
        sleep=fake_clock.sleep,
        wall_clock=lambda: later,
    )

    # Act
    handler.ingest(OWNER, command, request_id="req-s", wait_time_ms=0)
    fresh = IngestHandler(
        memory_store,
        recording_queue,
        async_config,
        clock=fake_clock.monotonic,
        sleep=fake_clock.sleep,
        wall_clock=lambda: datetime.now(timezone.utc),
    )
    fresh.ingest(OWNER, command, request_id="req-s", wait_time_ms=0)

    # Assert
    assert [m.request_id for m in recording_queue.messages] == ["req-s"]
    assert recording_queue.messages[0].payload == command.to_payload()


def test_recent_pending_record_is_not_requeued(handler, memory_store, recording_queue, command):
    """Test a fresh PENDING record (worker slow, not lost) is left alone."""
    memory_store.create(
        RequestRecord.new("req-n", OWNER, command.operation, command.to_payload())
    )

    handler.ingest(OWNER, command, request_id="req-n", wait_time_ms=0)

    assert recording_queue.messages == []


def test_stale_requeue_takes_access_token_from_repoll(
    memory_store, recording_queue, async_config, fake_clock, vat_command
):
    """
    Test the re-enqueued message of a stored VAT request.

    Verifies:
    - Stored fields come from the record
    - The access token (never stored) comes from the re-polling caller
    """
    record = RequestRecord.new(
        "req-t", OWNER, vat_command.operation, vat_command.to_payload()
    )
    memory_store.create(record)
    later = datetime.fromisoformat(record.updated_at) + timedelta(seconds=120)
    handler = IngestHandler(
        memory_store,
        recording_queue,
        async_config,
        clock=fake_clock.monotonic,
        sleep=fake_clock.sleep,
        wall_clock=lambda: later,
    )
    repoll = vat_command.model_copy(update={"access_token": "fresh-token"})

    handler.ingest(OWNER, repoll, request_id="req-t", wait_time_ms=0)

    [message] = recording_queue.messages
    assert message.payload["accessToken"] == "fresh-token"
    assert message.payload["vatNumber"] == "123456789"
    assert "accessToken" not in memory_store.get("req-t", OWNER).payload


# ============================================================================
# SECRET FIELDS
# ============================================================================


def test_access_token_stays_out_of_request_record(
    handler, memory_store, recording_queue, vat_command
):
    """
    Test the caller's tax authority token is carried by the queue only.

    Verifies:
    - Stored record payload has no accessToken
    - Queued message payload carries it for the worker
    """
    handler.ingest(OWNER, vat_command, request_id="req-v", wait_time_ms=0)

    record = memory_store.get("req-v", OWNER)
    assert "accessToken" not in record.payload
    assert record.payload["periodKey"] == "24A1"
    assert recording_queue.messages[0].payload["accessToken"] == "hmrc-token"


# ============================================================================
# SCENARIO D - CONCURRENT FIRST CALLS
# ============================================================================


class CountingExecutor:
    """Grant executor double that counts side effects."""

    def __init__(self) -> None:
        self.calls = 0
        self._lock = threading.Lock()

    def execute(self, owner_id, request_id, command) -> OperationOutcome:
        with self._lock:
            self.calls += 1
        time.sleep(0.05)
        return OperationOutcome.ok(201, {"status": "granted", "bundle": command.bundle_id})


def test_concurrent_calls_with_same_request_id_execute_once(
    memory_store, recording_queue, command
):
    """
    Test scenario D: two callers race on one request id.

    Verifies:
    - Exactly one message is enqueued
    - The side effect runs once
    - Both callers receive the same COMPLETED answer
    """
    # Arrange
    executor = CountingExecutor()
    recording_queue.worker = WorkerHandler(memory_store, {GRANT_BUNDLE: executor})
    config = AsyncRequestConfig(state_store_backend="memory", poll_interval_ms=10)
    handler = IngestHandler(memory_store, recording_queue, config)
    barrier = threading.Barrier(2)

    def call(_):
        barrier.wait()
        return handler.ingest(OWNER, command, request_id="req-d", wait_time_ms=5000)

    # Act
    with ThreadPoolExecutor(max_workers=2) as pool:
        first, second = pool.map(call, range(2))

    # Assert
    assert len(recording_queue.messages) == 1
    assert executor.calls == 1
    assert first.status_code == second.status_code == 201
    assert first.body == second.body == {"status": "granted", "bundle": "test"}
    assert memory_store.get("req-d", OWNER).status == RequestStatus.COMPLETED
