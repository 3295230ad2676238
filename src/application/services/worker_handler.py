"""
Worker Handler - Async Request Consumer

Processes one work queue message: decode, mark PROCESSING, perform the side
effect through an operation executor, write exactly one terminal transition.

Responsibility:
    - Decode the payload into its typed command
    - PENDING/PROCESSING -> PROCESSING (skip expired or already terminal records)
    - Dispatch to the executor registered for the command's operation
    - Map the executor's OutcomeKind to COMPLETED, FAILED or a retry signal

Architecture Notes:
    - Part of Application Layer (orchestration)
    - Thin orchestrator: no knowledge of bundles or VAT, only of outcome kinds
    - Retry-vs-terminal is decided from OperationOutcome.kind alone
    - TRANSIENT raises TransientDownstreamError for the queue to redeliver
    - Exceptions escaping an executor propagate (retried by the Celery task,
      dead-lettered when retries run out)

Does NOT contain:
    - Retry timing or dead-lettering (src.application.tasks)
    - Downstream HTTP details (src.infrastructure.downstream)
"""

import logging
from enum import Enum
from typing import Mapping, Protocol

from src.application.commands.async_commands import AsyncCommand, decode_command
from src.application.models import OperationOutcome, OutcomeKind, QueueMessage
from src.application.ports.request_state_store import RequestStateStoreProtocol
from src.domain.async_requests import ErrorDetail, RequestStatus, TransitionOutcome
from src.domain.shared.exceptions import PayloadDecodeError, TransientDownstreamError

logger = logging.getLogger(__name__)


class OperationExecutor(Protocol):
    """Performs one operation's side effect, idempotently per request_id."""

    def execute(
        self, owner_id: str, request_id: str, command: AsyncCommand
    ) -> OperationOutcome:
        ...


class WorkerResult(str, Enum):
    """What the worker did with one message."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class WorkerHandler:
    """
    Consumer-side procedure for async request messages.

    Args:
        store: Request state store
        executors: Operation tag -> executor
    """

    def __init__(
        self,
        store: RequestStateStoreProtocol,
        executors: Mapping[str, OperationExecutor],
    ) -> None:
        self.store = store
        self.executors = dict(executors)

    def handle(self, message: QueueMessage) -> WorkerResult:
        """
        Process one message to a terminal state (or raise for a retry).

        Args:
            message: Queue message

        Returns:
            WorkerResult describing the terminal write (or SKIPPED)

        Raises:
            TransientDownstreamError: Downstream asked us to come back later
            Exception: Anything unclassified (store outage, executor bug)
        """
        request_id = message.request_id
        owner_id = message.owner_id

        try:
            command = decode_command(message.operation, message.payload)
        except PayloadDecodeError as e:
            logger.error(f"Undecodable payload for request {request_id}: {e.message}")
            return self._finish(
                message,
                OperationOutcome.terminal(
                    ErrorDetail(
                        status_code=500,
                        error="invalid_payload",
                        message=e.message,
                        user_message="The request could not be processed",
                        action_advice="Please submit the request again",
                    )
                ),
            )

        executor = self.executors.get(command.operation)
        if executor is None:
            raise LookupError(f"No executor registered for {command.operation!r}")

        started = self.store.transition(request_id, owner_id, RequestStatus.PROCESSING)
        if started == TransitionOutcome.NOT_FOUND:
            logger.warning(
                f"Request {request_id} not found (expired?), dropping message"
            )
            return WorkerResult.SKIPPED
        if started == TransitionOutcome.REJECTED_TERMINAL:
            logger.info(f"Request {request_id} already terminal, skipping redelivery")
            return WorkerResult.SKIPPED

        logger.info(f"Processing request {request_id}: operation={command.operation}")
        outcome = executor.execute(owner_id, request_id, command)

        if outcome.kind == OutcomeKind.TRANSIENT:
            logger.warning(
                f"Transient downstream condition for request {request_id}: "
                f"{outcome.reason}; leaving record non-terminal"
            )
            raise TransientDownstreamError(
                f"Transient downstream condition: {outcome.reason}",
                request_id=request_id,
                reason=outcome.reason or "transient",
            )

        return self._finish(message, outcome)

    def fail_exhausted(self, message: QueueMessage, reason: str) -> WorkerResult:
        """
        Give up on a message whose retries are exhausted.

        Writes FAILED so pollers stop waiting; the message itself is
        dead-lettered by the caller.
        """
        error = ErrorDetail(
            status_code=503,
            error="retries_exhausted",
            message=f"Processing did not complete after retries: {reason}",
            user_message="The service is temporarily unavailable",
            action_advice="Please try again later",
        )
        return self._finish(message, OperationOutcome.terminal(error))

    def _finish(self, message: QueueMessage, outcome: OperationOutcome) -> WorkerResult:
        if outcome.kind == OutcomeKind.OK:
            applied = self.store.transition(
                message.request_id,
                message.owner_id,
                RequestStatus.COMPLETED,
                result=outcome.result,
            )
            result = WorkerResult.COMPLETED
        else:
            applied = self.store.transition(
                message.request_id,
                message.owner_id,
                RequestStatus.FAILED,
                error=outcome.error,
            )
            result = WorkerResult.FAILED

        if applied != TransitionOutcome.APPLIED:
            logger.warning(
                f"Terminal write for request {message.request_id} not applied: "
                f"{applied.value}"
            )
            return WorkerResult.SKIPPED

        logger.info(f"Request {message.request_id} {result.value}")
        return result
