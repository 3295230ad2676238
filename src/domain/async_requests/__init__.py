"""
Async Requests Subdomain

Lifecycle of one logical asynchronous operation (the request record) and
the rules governing its status transitions.

This module exports:
    - RequestRecord: Entity tracked by the request state store
    - RequestStatus: Lifecycle states
    - ErrorDetail: Structured failure stored on FAILED records
    - StoredResult: Structured success stored on COMPLETED records
    - TransitionOutcome: Result of a conditional status transition
"""

from .request_record import (
    ErrorDetail,
    RequestRecord,
    RequestStatus,
    StoredResult,
    TransitionOutcome,
    is_transition_allowed,
)

__all__ = [
    "ErrorDetail",
    "RequestRecord",
    "RequestStatus",
    "StoredResult",
    "TransitionOutcome",
    "is_transition_allowed",
]
