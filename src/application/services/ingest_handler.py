"""
Ingest Handler - Async Request Front Door

Decides between answering inline and deferring to the poll contract.
Called by the API layer after authentication, field validation and any
synchronous not-found pre-check have passed.

Responsibility:
    - Resolve the idempotency key (caller-supplied or generated)
    - Replay terminal outcomes without re-enqueueing
    - Create the PENDING record (secret fields left out) and enqueue exactly
      one message carrying the full command
    - Re-enqueue PENDING records orphaned by a crash between create and enqueue
    - Wait for a terminal state up to the caller's wait budget

Architecture Notes:
    - Part of Application Layer (orchestration)
    - Synchronous: runs in the FastAPI threadpool, blocking only its own thread
    - The wait loop is bounded by a monotonic deadline; sleep() is the only
      suspension point
    - clock/sleep/wall_clock are injectable for deterministic tests

Process Flow:
    1. request_id = header value or uuid4()
    2. initial_request hint -> skip lookup (create() is idempotent anyway),
       unless a precheck is supplied
    3. lookup: terminal -> replay; non-terminal -> wait (maybe re-enqueue)
    4. not found -> precheck, create PENDING; only the creator enqueues
    5. wait loop -> terminal record or deferred (202)
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import uuid4

from src.application.commands.async_commands import AsyncCommand
from src.application.models import IngestOutcome, QueueMessage
from src.application.ports.request_state_store import RequestStateStoreProtocol
from src.application.ports.work_queue import WorkQueueProtocol
from src.domain.async_requests import RequestRecord, RequestStatus
from src.shared.config import AsyncRequestConfig

logger = logging.getLogger(__name__)


class IngestHandler:
    """
    Front-door procedure shared by every async resource.

    Examples:
        >>> handler = IngestHandler(store, queue, config)
        >>> outcome = handler.ingest("owner-hash", command, wait_time_ms=0)
        >>> outcome.deferred
        True
    """

    def __init__(
        self,
        store: RequestStateStoreProtocol,
        queue: WorkQueueProtocol,
        config: AsyncRequestConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        wall_clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.store = store
        self.queue = queue
        self.config = config
        self._clock = clock
        self._sleep = sleep
        self._wall_clock = wall_clock

    def ingest(
        self,
        owner_id: str,
        command: AsyncCommand,
        request_id: Optional[str] = None,
        wait_time_ms: Optional[int] = None,
        initial_request: bool = False,
        precheck: Optional[Callable[[], None]] = None,
    ) -> IngestOutcome:
        """
        Run the ingest procedure for one validated command.

        Args:
            owner_id: Hashed subject of the caller
            command: Validated typed command
            request_id: Idempotency key from x-request-id (None generates one)
            wait_time_ms: Caller wait budget (None uses the configured default)
            initial_request: Caller hint that the request id is new
            precheck: Side-effect-free check run only before a new record is
                created (e.g. "owner holds the bundle"); its DomainException
                propagates with no record written and nothing enqueued

        Returns:
            IngestOutcome holding the terminal record, or deferred

        Raises:
            DomainException: From precheck (no record, no enqueue)
            RedisError / broker errors: propagate unchanged (surfaced as 500)
        """
        request_id = request_id or str(uuid4())
        budget_ms = self._resolve_budget(wait_time_ms)

        # The hint may be wrong; a precheck must never hide a stored answer
        existing: Optional[RequestRecord] = None
        if not initial_request or precheck is not None:
            existing = self.store.get(request_id, owner_id)

        if existing is None:
            if precheck is not None:
                precheck()
            created = self._create_and_enqueue(owner_id, request_id, command)
            if not created:
                # Record already there (concurrent caller or wrong hint)
                existing = self.store.get(request_id, owner_id)

        if existing is not None:
            if existing.operation and existing.operation != command.operation:
                logger.warning(
                    f"Request {request_id} reused for a different operation: "
                    f"stored={existing.operation}, received={command.operation}"
                )
            if existing.is_terminal:
                logger.info(
                    f"Replaying terminal outcome for request {request_id}: "
                    f"{existing.status.value}"
                )
                return IngestOutcome(request_id=request_id, record=existing, replayed=True)
            self._requeue_if_stale(existing, command)

        return self._wait_for_terminal(owner_id, request_id, budget_ms)

    # ------------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------------

    def _resolve_budget(self, wait_time_ms: Optional[int]) -> int:
        budget = self.config.default_wait_ms if wait_time_ms is None else wait_time_ms
        return max(0, min(budget, self.config.max_wait_ms))

    def _create_and_enqueue(
        self, owner_id: str, request_id: str, command: AsyncCommand
    ) -> bool:
        record = RequestRecord.new(
            request_id, owner_id, command.operation, command.to_payload()
        )
        if not self.store.create(record):
            logger.debug(f"Request {request_id} already exists, not enqueueing")
            return False

        message = QueueMessage(
            owner_id=owner_id,
            request_id=request_id,
            operation=command.operation,
            payload=command.to_message_payload(),
        )
        try:
            self.queue.enqueue(message)
        except Exception:
            logger.error(
                f"Enqueue failed for request {request_id}, removing PENDING record",
                exc_info=True,
            )
            self.store.delete(request_id, owner_id)
            raise

        logger.info(f"Request {request_id} accepted: operation={command.operation}")
        return True

    def _requeue_if_stale(self, record: RequestRecord, command: AsyncCommand) -> None:
        if record.status != RequestStatus.PENDING:
            return
        updated_at = datetime.fromisoformat(record.updated_at)
        age_seconds = (self._wall_clock() - updated_at).total_seconds()
        if age_seconds < self.config.stale_pending_seconds:
            return
        if not self.store.mark_requeued(
            record.request_id, record.owner_id, record.updated_at
        ):
            return

        # Secret fields are not stored; take them from the re-polling caller
        payload = dict(record.payload)
        if command.operation == record.operation:
            payload.update(command.secret_payload())

        logger.warning(
            f"Request {record.request_id} PENDING for {age_seconds:.0f}s, re-enqueueing"
        )
        self.queue.enqueue(
            QueueMessage(
                owner_id=record.owner_id,
                request_id=record.request_id,
                operation=record.operation,
                payload=payload,
            )
        )

    def _wait_for_terminal(
        self, owner_id: str, request_id: str, budget_ms: int
    ) -> IngestOutcome:
        if budget_ms <= 0:
            return IngestOutcome(request_id=request_id)

        deadline = self._clock() + budget_ms / 1000
        interval = self.config.poll_interval_ms / 1000

        while True:
            record = self.store.get(request_id, owner_id)
            if record is None:
                logger.warning(f"Request {request_id} disappeared while waiting")
                return IngestOutcome(request_id=request_id)
            if record.is_terminal:
                logger.info(
                    f"Request {request_id} reached {record.status.value} within wait budget"
                )
                return IngestOutcome(request_id=request_id, record=record)

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.info(
                    f"Wait budget of {budget_ms}ms exhausted for request {request_id}"
                )
                return IngestOutcome(request_id=request_id)
            self._sleep(min(interval, remaining))
