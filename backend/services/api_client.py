"""Retrying HTTP client shared by every upstream API call.

Knows nothing about quotas or credentials: callers pass the bearer token
and account for units themselves.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from config import get_settings
from services.errors import MalformedResponseError, PermanentAPIError, TransientAPIError

logger = logging.getLogger(__name__)
settings = get_settings()


def linear_backoff(attempt: int, base_delay: float) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
    return attempt * base_delay


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500


@dataclass
class RetryPolicy:
    max_attempts: int = field(default_factory=lambda: settings.api_max_attempts)
    base_delay: float = field(default_factory=lambda: settings.api_retry_base_delay)
    backoff: Callable[[int, float], float] = linear_backoff
    retryable_status: Callable[[int], bool] = is_retryable_status

    def delay(self, attempt: int) -> float:
        return self.backoff(attempt, self.base_delay)


class RetryingAPIClient:
    """Async JSON client with bounded retries on 5xx and network errors.

    4xx responses raise PermanentAPIError on the first attempt. Once the
    attempts are exhausted the last failure is raised as TransientAPIError.
    A 2xx body that does not decode raises MalformedResponseError.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self.timeout = httpx.Timeout(timeout or settings.api_timeout_seconds)
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "RetryingAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def call(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        token: str | None = None,
        method: str = "GET",
    ) -> dict[str, Any]:
        """Perform the request and return the decoded JSON body."""
        client = await self._get_client()
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        max_attempts = max(1, self.policy.max_attempts)
        last_status: int | None = None
        last_body = ""

        for attempt in range(1, max_attempts + 1):
            try:
                resp = await client.request(method, url, params=params, headers=headers)
            except httpx.RequestError as e:
                last_status, last_body = None, f"{type(e).__name__}: {e}"
                logger.warning(
                    f"Request to {url} failed ({last_body}) on attempt {attempt}/{max_attempts}"
                )
            else:
                if resp.is_success:
                    try:
                        return resp.json()
                    except ValueError:
                        logger.error(f"Non-JSON {resp.status_code} response from {url}")
                        raise MalformedResponseError(resp.status_code, resp.text)
                last_status, last_body = resp.status_code, resp.text
                if not self.policy.retryable_status(resp.status_code):
                    raise PermanentAPIError(resp.status_code, resp.text)
                logger.warning(
                    f"Server error {resp.status_code} from {url} on attempt {attempt}/{max_attempts}"
                )

            if attempt < max_attempts:
                await self._sleep(self.policy.delay(attempt))

        raise TransientAPIError(last_status, last_body)
