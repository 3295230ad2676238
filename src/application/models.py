"""
Shared Application Models

Responsibility:
    Contains shared models used across Application Layer.
    Prevents circular dependencies and code duplication.

Architecture Notes:
    - Part of Application Layer (Shared)
    - Used by Commands, Services, Tasks and Ports
    - Enums and common DTOs that don't belong to specific modules

Contains:
    - OutcomeKind: Classification of an operation attempt (ok/transient/terminal)
    - OperationOutcome: Value returned by operation executors and downstream wrappers
    - QueueMessage: Work queue message body
    - IngestOutcome: Result of the ingest procedure (terminal record or deferred)

Does NOT contain:
    - Business logic (belongs to Domain Layer)
    - HTTP models (belongs to API Layer)
    - Infrastructure details (belongs to Infrastructure Layer)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.domain.async_requests import ErrorDetail, RequestRecord, StoredResult


class OutcomeKind(str, Enum):
    """
    Classification of one attempt at an operation's side effect.

    Values:
        OK: Side effect done, result available
        TRANSIENT: Downstream temporarily unable (rate limit, unavailable);
            the message must be redelivered later
        TERMINAL: Final failure; retrying would give the same answer
    """

    OK = "ok"
    TRANSIENT = "transient"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class OperationOutcome:
    """
    Result/error-kind value returned instead of raising.

    The worker decides retry-vs-terminal from `kind` alone.

    Attributes:
        kind: Outcome classification
        result: Stored success (kind=OK)
        error: Stored failure (kind=TERMINAL)
        reason: Short description of a transient condition (kind=TRANSIENT)
    """

    kind: OutcomeKind
    result: Optional[StoredResult] = None
    error: Optional[ErrorDetail] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, status_code: int, body: dict[str, Any]) -> "OperationOutcome":
        return cls(OutcomeKind.OK, result=StoredResult(status_code, body))

    @classmethod
    def terminal(cls, error: ErrorDetail) -> "OperationOutcome":
        return cls(OutcomeKind.TERMINAL, error=error)

    @classmethod
    def transient(cls, reason: str) -> "OperationOutcome":
        return cls(OutcomeKind.TRANSIENT, reason=reason)


class QueueMessage(BaseModel):
    """
    Body of one work queue message.

    Attributes:
        owner_id: Hashed subject of the caller
        request_id: Idempotency key
        operation: Command tag, used to pick the executor
        payload: Command fields (decoded into the typed command by the worker)
    """

    owner_id: str = Field(min_length=1)
    request_id: str = Field(min_length=1)
    operation: str
    payload: dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True)
class IngestOutcome:
    """
    Result of the ingest procedure.

    Exactly one of `record` (terminal within budget, or replay) and
    `deferred` (budget exhausted) describes what to send back.

    Attributes:
        request_id: Resolved idempotency key (echoed in x-request-id)
        record: Terminal request record, when one was observed
        replayed: True when the record was already terminal on first lookup
    """

    request_id: str
    record: Optional[RequestRecord] = None
    replayed: bool = False

    @property
    def deferred(self) -> bool:
        return self.record is None

    @property
    def status_code(self) -> int:
        """HTTP status for the stored outcome (202 while deferred)."""
        if self.record is None:
            return 202
        if self.record.result is not None:
            return self.record.result.status_code
        return self.record.error.status_code

    @property
    def body(self) -> dict[str, Any]:
        """Stored body, exactly as written by the worker."""
        if self.record is None:
            return {
                "message": "Request accepted for processing",
                "requestId": self.request_id,
            }
        if self.record.result is not None:
            return self.record.result.body
        return self.record.error.to_body()
