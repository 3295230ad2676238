"""
RequestRecord Entity.

Durable record tracking one logical asynchronous operation, keyed by
(request_id, owner_id). Created by the ingest path, mutated only by the
worker path, read by both, and reclaimed by TTL.

State machine:
    PENDING -> PROCESSING -> COMPLETED (terminal)
    PENDING -> PROCESSING -> FAILED (terminal)
    PENDING -> COMPLETED | FAILED (worker may skip PROCESSING)
    PROCESSING -> PROCESSING (redelivery re-enters PROCESSING)

Terminal records never change again. Stores enforce this with a conditional
write; the helpers here only describe which transitions are legal.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class RequestStatus(str, Enum):
    """
    Lifecycle states of a request record.

    States:
        PENDING: Accepted by ingest, message enqueued (or about to be)
        PROCESSING: A worker picked the message up
        COMPLETED: Side effect done, result stored (terminal)
        FAILED: Terminal failure, structured error stored (terminal)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETED, RequestStatus.FAILED)


class TransitionOutcome(str, Enum):
    """Result of a conditional status transition against the store."""

    APPLIED = "applied"
    REJECTED_TERMINAL = "rejected_terminal"
    REJECTED_INVALID = "rejected_invalid"
    NOT_FOUND = "not_found"


_ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset(
        {RequestStatus.PROCESSING, RequestStatus.COMPLETED, RequestStatus.FAILED}
    ),
    RequestStatus.PROCESSING: frozenset(
        {RequestStatus.PROCESSING, RequestStatus.COMPLETED, RequestStatus.FAILED}
    ),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.FAILED: frozenset(),
}


def is_transition_allowed(current: RequestStatus, new: RequestStatus) -> bool:
    """
    Check whether moving from current to new status is legal.

    Examples:
        >>> is_transition_allowed(RequestStatus.PENDING, RequestStatus.PROCESSING)
        True
        >>> is_transition_allowed(RequestStatus.COMPLETED, RequestStatus.FAILED)
        False
    """
    return new in _ALLOWED_TRANSITIONS[current]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ErrorDetail:
    """
    Structured failure stored on FAILED records and replayed verbatim.

    Attributes:
        status_code: HTTP status returned to callers (4xx or 5xx)
        error: Machine-readable error code (e.g. "cap_reached", "INVALID_VRN")
        message: Technical description
        user_message: End-user message (optional)
        action_advice: End-user remediation advice (optional)
    """

    status_code: int
    error: str
    message: str
    user_message: Optional[str] = None
    action_advice: Optional[str] = None

    def to_body(self) -> dict[str, Any]:
        """Render the HTTP error body (camelCase, optional keys omitted)."""
        body: dict[str, Any] = {"error": self.error, "message": self.message}
        if self.user_message:
            body["userMessage"] = self.user_message
        if self.action_advice:
            body["actionAdvice"] = self.action_advice
        return body

    def to_dict(self) -> dict[str, Any]:
        return {
            "status_code": self.status_code,
            "error": self.error,
            "message": self.message,
            "user_message": self.user_message,
            "action_advice": self.action_advice,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ErrorDetail":
        return cls(
            status_code=int(data["status_code"]),
            error=data["error"],
            message=data["message"],
            user_message=data.get("user_message"),
            action_advice=data.get("action_advice"),
        )


@dataclass(frozen=True)
class StoredResult:
    """
    Structured success stored on COMPLETED records.

    Attributes:
        status_code: HTTP status returned to callers (2xx)
        body: Response body, replayed byte-for-byte on every later poll
    """

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"status_code": self.status_code, "body": self.body}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredResult":
        return cls(status_code=int(data["status_code"]), body=data.get("body") or {})


@dataclass
class RequestRecord:
    """
    One logical async operation.

    Attributes:
        request_id: Idempotency key (client-supplied or server-generated UUID)
        owner_id: Hashed subject of the authenticated caller
        operation: Operation tag of the command (e.g. "bundle.grant")
        payload: Typed command serialized to a JSON-compatible dict
        status: Current lifecycle state
        result: Set only when status is COMPLETED
        error: Set only when status is FAILED
        created_at: ISO 8601 timestamp of creation
        updated_at: ISO 8601 timestamp of the last applied change
        attempts: Number of times a worker moved the record to PROCESSING

    Examples:
        >>> record = RequestRecord.new("req-1", "owner-hash", "bundle.grant", {})
        >>> record.status
        <RequestStatus.PENDING: 'pending'>
    """

    request_id: str
    owner_id: str
    operation: str
    payload: dict[str, Any]
    status: RequestStatus = RequestStatus.PENDING
    result: Optional[StoredResult] = None
    error: Optional[ErrorDetail] = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    attempts: int = 0

    @classmethod
    def new(
        cls, request_id: str, owner_id: str, operation: str, payload: dict[str, Any]
    ) -> "RequestRecord":
        """Create a fresh PENDING record."""
        now = utc_now_iso()
        return cls(
            request_id=request_id,
            owner_id=owner_id,
            operation=operation,
            payload=payload,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def apply_transition(
        self,
        new_status: RequestStatus,
        result: Optional[StoredResult] = None,
        error: Optional[ErrorDetail] = None,
    ) -> TransitionOutcome:
        """
        Apply a status transition in place if it is legal.

        Args:
            new_status: Target status
            result: Success payload (required for COMPLETED)
            error: Failure payload (required for FAILED)

        Returns:
            TransitionOutcome.APPLIED, REJECTED_TERMINAL or REJECTED_INVALID.
            The record is untouched unless APPLIED.

        Raises:
            ValueError: If COMPLETED has no result or FAILED has no error
        """
        if new_status == RequestStatus.COMPLETED and result is None:
            raise ValueError("COMPLETED transition requires a result")
        if new_status == RequestStatus.FAILED and error is None:
            raise ValueError("FAILED transition requires an error")

        if self.is_terminal:
            return TransitionOutcome.REJECTED_TERMINAL
        if not is_transition_allowed(self.status, new_status):
            return TransitionOutcome.REJECTED_INVALID

        self.status = new_status
        self.updated_at = utc_now_iso()
        if new_status == RequestStatus.PROCESSING:
            self.attempts += 1
        elif new_status == RequestStatus.COMPLETED:
            self.result = result
        elif new_status == RequestStatus.FAILED:
            self.error = error
        return TransitionOutcome.APPLIED

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict for storage."""
        return {
            "request_id": self.request_id,
            "owner_id": self.owner_id,
            "operation": self.operation,
            "payload": self.payload,
            "status": self.status.value,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error.to_dict() if self.error else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RequestRecord":
        """Deserialize from the stored dict form."""
        return cls(
            request_id=data["request_id"],
            owner_id=data["owner_id"],
            operation=data.get("operation", ""),
            payload=data.get("payload") or {},
            status=RequestStatus(data["status"]),
            result=StoredResult.from_dict(data["result"]) if data.get("result") else None,
            error=ErrorDetail.from_dict(data["error"]) if data.get("error") else None,
            created_at=data.get("created_at") or utc_now_iso(),
            updated_at=data.get("updated_at") or utc_now_iso(),
            attempts=int(data.get("attempts", 0)),
        )
