"""
Async Request Headers

HTTP side of the ingest contract shared by every async resource.

Responsibility:
    - Parse x-request-id, x-wait-time-ms and x-initial-request
    - Render an IngestOutcome as the HTTP response (stored status and body,
      or 202 with Location and Retry-After)

Header Rules:
    - x-request-id: 1-128 chars of [A-Za-z0-9._:-]; absent -> generated
    - x-wait-time-ms: integer >= 0; absent -> configured default; capped by
      the ingest handler
    - x-initial-request: "true" skips the first store lookup
"""

import re
from dataclasses import dataclass
from typing import Optional

from fastapi import Response, status
from fastapi.responses import JSONResponse

from src.application.models import IngestOutcome
from src.domain.shared.exceptions import InvalidRequestError

REQUEST_ID_HEADER = "x-request-id"
RETRY_AFTER_SECONDS = 5

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")
_TRUE_VALUES = {"true", "1", "yes"}


@dataclass(frozen=True)
class AsyncRequestHeaders:
    request_id: Optional[str] = None
    wait_time_ms: Optional[int] = None
    initial_request: bool = False


def is_valid_request_id(value: Optional[str]) -> bool:
    return bool(value) and _REQUEST_ID_PATTERN.match(value) is not None


def parse_async_headers(
    request_id: Optional[str],
    wait_time_ms: Optional[str],
    initial_request: Optional[str],
) -> AsyncRequestHeaders:
    """
    Validate the async request headers.

    Raises:
        InvalidRequestError: Malformed x-request-id or x-wait-time-ms
    """
    errors = []

    if request_id is not None:
        request_id = request_id.strip()
        if not is_valid_request_id(request_id):
            errors.append(
                "Invalid x-request-id header: use 1-128 characters of A-Z a-z 0-9 . _ : -"
            )

    wait_ms: Optional[int] = None
    if wait_time_ms is not None and wait_time_ms.strip() != "":
        raw = wait_time_ms.strip()
        if not raw.isdigit():
            errors.append("Invalid x-wait-time-ms header: must be a non-negative integer")
        else:
            wait_ms = int(raw)

    if errors:
        raise InvalidRequestError(f"Invalid request: {'; '.join(errors)}", errors)

    return AsyncRequestHeaders(
        request_id=request_id or None,
        wait_time_ms=wait_ms,
        initial_request=(initial_request or "").strip().lower() in _TRUE_VALUES,
    )


def render_outcome(outcome: IngestOutcome, location: str) -> Response:
    """
    Build the HTTP response for an ingest outcome.

    Stored bodies are returned as written by the worker; a stored 204 is sent
    with an empty body.
    """
    headers = {REQUEST_ID_HEADER: outcome.request_id}

    if outcome.deferred:
        headers["Location"] = location
        headers["Retry-After"] = str(RETRY_AFTER_SECONDS)
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED, content=outcome.body, headers=headers
        )

    if outcome.status_code == status.HTTP_204_NO_CONTENT:
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)

    return JSONResponse(
        status_code=outcome.status_code, content=outcome.body, headers=headers
    )
