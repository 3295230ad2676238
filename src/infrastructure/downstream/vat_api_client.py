"""
HMRC VAT API Client

httpx wrapper around the VAT return and obligation endpoints of the tax
authority API.

Responsibility:
    - POST {base}/organisations/vat/{vrn}/returns with the caller's OAuth token
    - GET {base}/organisations/vat/{vrn}/obligations?from=&to=&status=
    - Send the caller's fraud prevention headers on every call
    - Classify every outcome into a DownstreamResponse (never raise for HTTP
      or transport conditions)

Architecture Notes:
    - Infrastructure Layer (external dependency on httpx)
    - Implements VatApiProtocol
    - transport is injectable (httpx.MockTransport in tests)

Classification:
    - 2xx -> OK
    - 429, 503, 504 -> TRANSIENT (rate limited / temporarily unavailable)
    - httpx.TransportError (connect, read, timeout) -> TRANSIENT
    - any other status -> TERMINAL
"""

import logging
from typing import Any, Optional

import httpx

from src.application.models import OutcomeKind
from src.application.ports.vat_api import DownstreamResponse

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 503, 504})
HMRC_ACCEPT_HEADER = "application/vnd.hmrc.1.0+json"


def mask_token(token: str) -> str:
    """Short preview of a bearer token, safe for logs."""
    if not token:
        return "<empty>"
    return f"{token[:4]}...({len(token)} chars)"


def classify_status(status_code: int) -> OutcomeKind:
    if 200 <= status_code < 300:
        return OutcomeKind.OK
    if status_code in TRANSIENT_STATUS_CODES:
        return OutcomeKind.TRANSIENT
    return OutcomeKind.TERMINAL


class HmrcVatApiClient:
    """
    VAT return and obligations client.

    Args:
        base_url: API base URL (sandbox or production)
        timeout_seconds: Total request timeout
        transport: Optional httpx transport override

    Examples:
        >>> client = HmrcVatApiClient("https://test-api.service.hmrc.gov.uk")
        >>> response = client.submit_return("123456789", body, token)
        >>> response.kind
        <OutcomeKind.OK: 'ok'>
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    def submit_return(
        self,
        vat_number: str,
        return_body: dict[str, Any],
        access_token: str,
        fraud_headers: Optional[dict[str, str]] = None,
    ) -> DownstreamResponse:
        logger.info(
            f"Submitting VAT return: vrn={vat_number}, "
            f"periodKey={return_body.get('periodKey')}, token={mask_token(access_token)}"
        )
        return self._send(
            "POST",
            f"/organisations/vat/{vat_number}/returns",
            access_token,
            fraud_headers,
            json=return_body,
        )

    def get_obligations(
        self,
        vat_number: str,
        params: dict[str, str],
        access_token: str,
        fraud_headers: Optional[dict[str, str]] = None,
    ) -> DownstreamResponse:
        logger.info(
            f"Fetching VAT obligations: vrn={vat_number}, params={params}, "
            f"token={mask_token(access_token)}"
        )
        return self._send(
            "GET",
            f"/organisations/vat/{vat_number}/obligations",
            access_token,
            fraud_headers,
            params=params,
        )

    @staticmethod
    def build_headers(
        access_token: str, fraud_headers: Optional[dict[str, str]] = None
    ) -> dict[str, str]:
        """Request headers; the fixed headers win over fraud headers."""
        return {
            **(fraud_headers or {}),
            "Content-Type": "application/json",
            "Accept": HMRC_ACCEPT_HEADER,
            "Authorization": f"Bearer {access_token}",
        }

    def _send(
        self,
        method: str,
        path: str,
        access_token: str,
        fraud_headers: Optional[dict[str, str]],
        **kwargs: Any,
    ) -> DownstreamResponse:
        headers = self.build_headers(access_token, fraud_headers)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.request(
                    method, f"{self.base_url}{path}", headers=headers, **kwargs
                )
        except httpx.TransportError as e:
            reason = type(e).__name__
            logger.warning(f"VAT API transport failure ({reason}): {e}")
            return DownstreamResponse(kind=OutcomeKind.TRANSIENT, reason=reason)

        kind = classify_status(response.status_code)
        body = self._decode_body(response)
        logger.info(
            f"VAT API {method} {path} responded HTTP {response.status_code} ({kind.value})"
        )
        return DownstreamResponse(
            kind=kind,
            status_code=response.status_code,
            body=body,
            reason=f"HTTP {response.status_code}",
        )

    @staticmethod
    def _decode_body(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            logger.warning("VAT API returned a non-JSON body")
            return {}
        return body if isinstance(body, dict) else {"items": body}
