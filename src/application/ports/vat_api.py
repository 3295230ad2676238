"""
VatApi Interface

Wrapper around the tax authority VAT return and obligation endpoints.
Implementations never raise for downstream conditions: they classify every
response (and transport failure) into an OperationOutcome-compatible
DownstreamResponse.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from src.application.models import OutcomeKind


@dataclass(frozen=True)
class DownstreamResponse:
    """
    Classified downstream response.

    Attributes:
        kind: OK, TRANSIENT or TERMINAL
        status_code: HTTP status (None for transport failures)
        body: Decoded JSON body (empty dict when not JSON)
        reason: Short description for logs (e.g. "HTTP 429", "ConnectTimeout")
    """

    kind: OutcomeKind
    status_code: Optional[int] = None
    body: dict[str, Any] = field(default_factory=dict)
    reason: str = ""


class VatApiProtocol(Protocol):
    def submit_return(
        self,
        vat_number: str,
        return_body: dict[str, Any],
        access_token: str,
        fraud_headers: Optional[dict[str, str]] = None,
    ) -> DownstreamResponse:
        ...

    def get_obligations(
        self,
        vat_number: str,
        params: dict[str, str],
        access_token: str,
        fraud_headers: Optional[dict[str, str]] = None,
    ) -> DownstreamResponse:
        ...
