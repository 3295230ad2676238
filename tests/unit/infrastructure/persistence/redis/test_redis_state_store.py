"""
Tests for RedisRequestStateStore.

Covers:
- create() uses SET NX EX
- get() decodes stored JSON (missing key -> None)
- transition() WATCH/MULTI/EXEC: applied write, WatchError retry,
  terminal rejection, NOT_FOUND
- mark_requeued() compare-and-set
- delete()
"""

import json
from unittest.mock import MagicMock

import pytest
from redis.exceptions import WatchError

from src.domain.async_requests import (
    ErrorDetail,
    RequestRecord,
    RequestStatus,
    StoredResult,
    TransitionOutcome,
)
from src.infrastructure.persistence.redis import RedisRequestStateStore

KEY = "async_request:owner-1:req-1"


@pytest.fixture
def record() -> RequestRecord:
    return RequestRecord.new("req-1", "owner-1", "bundle.grant", {"bundleId": "test"})


@pytest.fixture
def pipe() -> MagicMock:
    return MagicMock()


@pytest.fixture
def redis_mock(pipe) -> MagicMock:
    mock = MagicMock()
    mock.pipeline.return_value = pipe
    return mock


@pytest.fixture
def store(redis_mock) -> RedisRequestStateStore:
    return RedisRequestStateStore(redis_mock, ttl_seconds=3600)


def test_create_uses_set_nx_with_ttl(store, redis_mock, record):
    """
    Test create().

    Verifies:
    - SET with nx=True and ex=ttl on the owner-scoped key
    - Returns False when the key already exists
    """
    redis_mock.set.return_value = True
    assert store.create(record) is True

    key, value = redis_mock.set.call_args.args
    assert key == KEY
    assert json.loads(value)["status"] == "pending"
    assert redis_mock.set.call_args.kwargs == {"nx": True, "ex": 3600}

    redis_mock.set.return_value = None
    assert store.create(record) is False


def test_get_decodes_record(store, redis_mock, record):
    redis_mock.get.return_value = json.dumps(record.to_dict())

    fetched = store.get("req-1", "owner-1")

    redis_mock.get.assert_called_once_with(KEY)
    assert fetched == record


def test_get_missing_record(store, redis_mock):
    redis_mock.get.return_value = None

    assert store.get("req-1", "owner-1") is None


def test_transition_applies_with_refreshed_ttl(store, pipe, record):
    """Test an applied transition writes the new record inside MULTI with ex=ttl."""
    pipe.get.return_value = json.dumps(record.to_dict())

    outcome = store.transition("req-1", "owner-1", RequestStatus.PROCESSING)

    assert outcome == TransitionOutcome.APPLIED
    pipe.watch.assert_called_once_with(KEY)
    pipe.multi.assert_called_once()
    key, value = pipe.set.call_args.args
    assert key == KEY
    assert json.loads(value)["status"] == "processing"
    assert json.loads(value)["attempts"] == 1
    assert pipe.set.call_args.kwargs == {"ex": 3600}
    pipe.execute.assert_called_once()
    pipe.reset.assert_called_once()


def test_transition_retries_on_watch_error(store, pipe, record):
    """Test a concurrent modification (WatchError) re-reads and retries."""
    pipe.get.return_value = json.dumps(record.to_dict())
    pipe.execute.side_effect = [WatchError(), [True]]

    outcome = store.transition(
        "req-1", "owner-1", RequestStatus.COMPLETED, result=StoredResult(201, {})
    )

    assert outcome == TransitionOutcome.APPLIED
    assert pipe.watch.call_count == 2
    assert pipe.execute.call_count == 2


def test_transition_refuses_terminal_record(store, pipe, record):
    """Test terminal immutability: no write is issued for a terminal record."""
    record.apply_transition(RequestStatus.COMPLETED, result=StoredResult(201, {"a": 1}))
    pipe.get.return_value = json.dumps(record.to_dict())

    outcome = store.transition(
        "req-1", "owner-1", RequestStatus.FAILED, error=ErrorDetail(500, "e", "m")
    )

    assert outcome == TransitionOutcome.REJECTED_TERMINAL
    pipe.multi.assert_not_called()
    pipe.set.assert_not_called()
    pipe.reset.assert_called_once()


def test_transition_missing_record(store, pipe):
    pipe.get.return_value = None

    assert store.transition("req-1", "owner-1", RequestStatus.PROCESSING) == (
        TransitionOutcome.NOT_FOUND
    )


def test_mark_requeued_compare_and_set(store, pipe, record):
    """
    Test mark_requeued().

    Verifies:
    - Writes when status is PENDING and updated_at matches
    - Refuses on a stale updated_at
    - Returns False on WatchError
    """
    pipe.get.return_value = json.dumps(record.to_dict())
    assert store.mark_requeued("req-1", "owner-1", record.updated_at) is True
    pipe.set.assert_called_once()

    assert store.mark_requeued("req-1", "owner-1", "1999-01-01T00:00:00+00:00") is False

    pipe.execute.side_effect = WatchError()
    assert store.mark_requeued("req-1", "owner-1", record.updated_at) is False


def test_delete(store, redis_mock):
    store.delete("req-1", "owner-1")

    redis_mock.delete.assert_called_once_with(KEY)
