"""
HTTP transport for upstream spot feeds.

Provides:
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async GET client with bounded retries, shared by every feed

Keeps transport concerns (timeouts, retries, backoff) out of the
normalizers, which only ever see decoded JSON records.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "spot-tracker/0.1 (+https://github.com/spot-tracker)"

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})
RETRYABLE_EXCEPTIONS = (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError)


@dataclass
class RetryConfig:
    """
    Exponential backoff for feed requests.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))

    Kept small by default: a feed that keeps failing is simply retried on
    the next poll tick.
    """

    max_retries: int = 2
    max_backoff_seconds: float = 30.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int) -> float:
        """
        Backoff duration in seconds for a 0-indexed retry attempt.
        """
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in RETRYABLE_STATUS

    def is_retryable_exception(self, exc: Exception) -> bool:
        return isinstance(exc, RETRYABLE_EXCEPTIONS)


class HTTPClientError(Exception):
    """Raised when a feed request fails for good."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(HTTPClientError):
    """Raised when the feed keeps answering 429 after all retries."""


class HTTPClient:
    """
    Async GET client with retry logic.

    One instance (and one connection pool) is shared by all aggregator
    loops for the lifetime of the process.

    Example:
        async with HTTPClient(RetryConfig(max_retries=2), timeout=30) as client:
            response = await client.get("https://api.pota.app/spot/activator")
            records = response.json()
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.user_agent = user_agent
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Perform a GET request, retrying transient failures.

        Args:
            url: Request URL
            params: Query parameters
            headers: Extra request headers

        Returns:
            httpx.Response with a 2xx/3xx status

        Raises:
            HTTPClientError: On non-retryable errors or after retries exhausted
            RateLimitError: When rate limited and retries exhausted
        """
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        attempts = self.retry_config.max_retries + 1

        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1
            try:
                response = await self._client.get(url, params=params, headers=headers)
            except RETRYABLE_EXCEPTIONS as e:
                if last_attempt:
                    raise HTTPClientError(
                        f"GET {url} failed after {attempts} attempts: {e}"
                    ) from e
                await self._backoff(url, attempt, type(e).__name__)
                continue

            if self.retry_config.is_retryable_status(response.status_code):
                if last_attempt:
                    error_cls = (
                        RateLimitError if response.status_code == 429 else HTTPClientError
                    )
                    raise error_cls(
                        f"GET {url} returned {response.status_code} "
                        f"after {attempts} attempts",
                        status_code=response.status_code,
                        response_body=response.text,
                    )
                await self._backoff(url, attempt, f"status {response.status_code}")
                continue

            if response.status_code >= 400:
                raise HTTPClientError(
                    f"GET {url} returned {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text,
                )

            return response

        # range(attempts) is never empty, so the loop always returns or raises
        raise HTTPClientError(f"GET {url} failed after {attempts} attempts")

    async def _backoff(self, url: str, attempt: int, reason: str) -> None:
        backoff = self.retry_config.calculate_backoff(attempt)
        logger.warning(
            "Retryable %s from %s, attempt %d/%d, backing off %.2fs",
            reason,
            url,
            attempt + 1,
            self.retry_config.max_retries + 1,
            backoff,
        )
        await asyncio.sleep(backoff)
