"""
Domain Layer Exceptions

Exception hierarchy shared by every layer of the async request service.
All domain-specific exceptions inherit from DomainException.

Responsibility:
    - Base exception class for domain errors
    - Carry the HTTP-facing error code and status for API rendering
    - Separate "retry later" from "give up" on the worker path

Architecture Notes:
    - Part of Shared Domain (used across bundles, VAT returns and async requests)
    - API Layer converts these to {error, message, userMessage?, actionAdvice?}
    - Infrastructure errors (RedisError, httpx errors) are NOT wrapped here
"""

from typing import Optional


class DomainException(Exception):
    """
    Base exception for all domain layer errors.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status the API layer should use
        error_code: Machine-readable error identifier
        user_message: Optional message suitable for end users
        action_advice: Optional remediation advice for end users

    Examples:
        >>> raise DomainException("Business rule violation")
    """

    status_code: int = 400
    error_code: str = "bad_request"

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        action_advice: Optional[str] = None,
    ) -> None:
        """
        Initialize domain exception with error message.

        Args:
            message: Human-readable error description
            user_message: Optional end-user message
            action_advice: Optional end-user remediation advice
        """
        self.message = message
        self.user_message = user_message
        self.action_advice = action_advice
        super().__init__(message)

    def __str__(self) -> str:
        """String representation of the exception."""
        return f"{self.__class__.__name__}: {self.message}"

    def __repr__(self) -> str:
        """Developer-friendly representation."""
        return f"{self.__class__.__name__}(message={self.message!r})"


class InvalidRequestError(DomainException):
    """
    Raised when request fields or async control headers are malformed.

    Raised before any request record is created, so nothing is enqueued.

    Examples:
        >>> raise InvalidRequestError("Invalid request", errors=["vatNumber is required"])
    """

    status_code = 400
    error_code = "invalid_request"

    def __init__(self, message: str, errors: Optional[list[str]] = None) -> None:
        """
        Initialize validation error.

        Args:
            message: Summary description
            errors: Individual field problems (optional)
        """
        self.errors = list(errors or [])
        super().__init__(message)


class AuthenticationError(DomainException):
    """Raised when the bearer credential is missing, expired or invalid."""

    status_code = 401
    error_code = "unauthorized"


class ResourceNotFoundError(DomainException):
    """
    Raised when a synchronous lookup finds nothing for this owner.

    Examples:
        >>> raise ResourceNotFoundError("Receipt not found")
    """

    status_code = 404
    error_code = "not_found"


class BundleNotFoundError(ResourceNotFoundError):
    """
    Raised when a bundle id is absent from the catalog or not held by the owner.

    Attributes:
        bundle_id: Bundle identifier that was looked up
    """

    error_code = "bundle_not_found"

    def __init__(self, message: str, bundle_id: Optional[str] = None) -> None:
        self.bundle_id = bundle_id
        super().__init__(message)


class QualifierError(DomainException):
    """
    Raised when bundle qualifiers are unknown or do not satisfy the catalog.

    Attributes:
        error_code: "unknown_qualifier" or "qualifier_mismatch"
        qualifier: Offending qualifier key (unknown_qualifier only)
    """

    status_code = 400

    def __init__(
        self, message: str, error_code: str, qualifier: Optional[str] = None
    ) -> None:
        self.error_code = error_code
        self.qualifier = qualifier
        super().__init__(message)


class TransientDownstreamError(DomainException):
    """
    Raised by the worker when the downstream call must be retried later.

    Never rendered over HTTP. The Celery task converts it into a retry with
    backoff and, once retries are exhausted, a dead-letter entry.

    Attributes:
        request_id: Idempotency key of the message being processed
        reason: Short description of the downstream condition (e.g. "HTTP 429")
    """

    status_code = 503
    error_code = "downstream_unavailable"

    def __init__(self, message: str, request_id: str, reason: str) -> None:
        self.request_id = request_id
        self.reason = reason
        super().__init__(message)


class PayloadDecodeError(DomainException):
    """Raised when a queue message cannot be decoded into a known command."""

    error_code = "invalid_payload"
