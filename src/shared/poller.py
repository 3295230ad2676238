"""
Async Request Poller

Client-side helper for the 202 polling contract, used by scripts and
integration tests that call the API.

Responsibility:
    - Send the first call with x-initial-request: true (and a fresh x-request-id)
    - While the answer is 202, wait and repeat the same call with the
      x-request-id the server returned
    - Stop at the first non-202 answer or when the poll timeout runs out

Architecture Notes:
    - Part of Shared layer (no dependency on Application/Domain)
    - httpx.Client is injectable (FastAPI TestClient is an httpx.Client)
    - clock/sleep are injectable for deterministic tests

Poll Schedule:
    1s, 2s, 4s, 4s, ... (doubling, capped at max_delay_seconds); a
    Retry-After header on the 202 raises the delay to at least its value
    only when honor_retry_after is set
"""

import logging
import time
from typing import Any, Callable, Optional
from uuid import uuid4

import httpx

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"


class AsyncRequestPoller:
    """
    Repeat an async API call until it leaves 202.

    Args:
        client: httpx.Client bound to the API base URL
        access_token: Bearer token sent as Authorization
        timeout_seconds: Give up after this long (returns the last 202)
        initial_delay_seconds: First poll delay
        max_delay_seconds: Poll delay cap
        honor_retry_after: Wait at least Retry-After between polls
        clock: Monotonic seconds
        sleep: Sleep function

    Examples:
        >>> with httpx.Client(base_url="http://localhost:8000") as client:
        ...     poller = AsyncRequestPoller(client, token)
        ...     response = poller.call("POST", "/api/v1/bundle", json={"bundleId": "test"})
        >>> response.status_code
        201
    """

    def __init__(
        self,
        client: httpx.Client,
        access_token: Optional[str] = None,
        timeout_seconds: float = 60.0,
        initial_delay_seconds: float = 1.0,
        max_delay_seconds: float = 4.0,
        honor_retry_after: bool = False,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.access_token = access_token
        self.timeout_seconds = timeout_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self.honor_retry_after = honor_retry_after
        self._clock = clock
        self._sleep = sleep

    def call(
        self,
        method: str,
        url: str,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        wait_time_ms: Optional[int] = None,
        request_id: Optional[str] = None,
        fire_and_forget: bool = False,
    ) -> httpx.Response:
        """
        Perform the call and poll through 202 answers.

        Args:
            method: HTTP method
            url: Path (relative to the client base URL) or absolute URL
            json: JSON body, resent unchanged on every poll
            params: Query parameters
            wait_time_ms: x-wait-time-ms sent on every call
            request_id: Idempotency key (generated when None)
            fire_and_forget: Send x-wait-time-ms: 0 and return the first answer

        Returns:
            The first non-202 response, or the last 202 on timeout
        """
        headers = {
            REQUEST_ID_HEADER: request_id or str(uuid4()),
            "x-initial-request": "true",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if fire_and_forget:
            headers["x-wait-time-ms"] = "0"
        elif wait_time_ms is not None:
            headers["x-wait-time-ms"] = str(wait_time_ms)

        description = f"[{method.upper()} {url}]"
        response = self.client.request(method, url, json=json, params=params, headers=headers)
        if response.status_code != 202 or fire_and_forget:
            return response

        headers.pop("x-initial-request")
        headers[REQUEST_ID_HEADER] = response.headers.get(
            REQUEST_ID_HEADER, headers[REQUEST_ID_HEADER]
        )

        started = self._clock()
        poll_count = 0
        while response.status_code == 202:
            elapsed = self._clock() - started
            if elapsed > self.timeout_seconds:
                logger.error(
                    f"Timed out async request {description} "
                    f"(poll #{poll_count}, elapsed {elapsed:.1f}s)"
                )
                return response

            poll_count += 1
            self._sleep(self._delay(poll_count, response))
            logger.debug(f"Re-trying async request {description} (poll #{poll_count})")
            response = self.client.request(
                method, url, json=json, params=params, headers=headers
            )

        logger.info(
            f"Finished async request {description} "
            f"(poll #{poll_count}, status {response.status_code})"
        )
        return response

    def _delay(self, poll_count: int, response: httpx.Response) -> float:
        delay = min(
            self.initial_delay_seconds * (2 ** (poll_count - 1)), self.max_delay_seconds
        )
        if self.honor_retry_after:
            retry_after = response.headers.get("Retry-After", "")
            if retry_after.isdigit():
                delay = max(delay, float(retry_after))
        return delay
