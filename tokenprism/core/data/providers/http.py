"""
Rate-limited, retrying HTTP transport injected into token source adapters.

Adapters never subclass this; each one receives its own ``HttpClient`` so
rate-limit windows and retry policy stay per upstream.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from tokenprism.core.exceptions import NetworkError, ProviderError, RateLimitError
from tokenprism.core.patterns import ExponentialBackoffRetry, RetryConfig


@dataclass
class HttpConfig:
    """Configuration for HTTP client behavior."""

    base_url: str
    timeout: float = 10.0
    user_agent: str = "tokenprism-http-client"
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url cannot be empty")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


@dataclass
class RateLimitConfig:
    """Sliding one-minute request budget."""

    requests_per_minute: int
    concurrent_requests: int = 4

    def __post_init__(self) -> None:
        if self.requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        if self.concurrent_requests <= 0:
            raise ValueError("concurrent_requests must be positive")


class HttpClient:
    """
    Async JSON HTTP client with rate limiting and exponential backoff.

    Timeouts, connection errors, HTTP 429 and 5xx responses are retried;
    other 4xx responses fail immediately with ``ProviderError``.
    """

    WINDOW_SECONDS = 60.0

    def __init__(
        self,
        name: str,
        http_config: HttpConfig,
        rate_limit: RateLimitConfig,
        retry_config: RetryConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.name = name
        self.http_config = http_config
        self.rate_limit = rate_limit
        self.retry_config = retry_config or RetryConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._request_history: deque[float] = deque()
        self._semaphore = asyncio.Semaphore(rate_limit.concurrent_requests)
        self._window_lock = asyncio.Lock()

    async def __aenter__(self) -> "HttpClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {
                "User-Agent": self.http_config.user_agent,
                "Accept": "application/json",
                **self.http_config.headers,
            }
            self._client = httpx.AsyncClient(
                base_url=self.http_config.base_url,
                timeout=httpx.Timeout(self.http_config.timeout),
                follow_redirects=True,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _wait_for_rate_limit(self) -> None:
        async with self._window_lock:
            now = time.monotonic()
            while self._request_history and now - self._request_history[0] >= self.WINDOW_SECONDS:
                self._request_history.popleft()

            if len(self._request_history) >= self.rate_limit.requests_per_minute:
                delay = self.WINDOW_SECONDS - (now - self._request_history[0])
                logger.warning("Rate limit reached, waiting", source=self.name, wait_seconds=round(delay, 2))
                await asyncio.sleep(delay)
                self._request_history.popleft()

            self._request_history.append(time.monotonic())

    async def _attempt(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = self._ensure_client()
        async with self._semaphore:
            await self._wait_for_rate_limit()
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.TimeoutException as e:
                raise NetworkError(f"Request to {self.name} timed out", self.name, details={"url": url}) from e
            except httpx.TransportError as e:
                raise NetworkError(f"Transport error from {self.name}: {e}", self.name, details={"url": url}) from e

        logger.debug("API response", source=self.name, url=url, status=response.status_code)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                f"{self.name} rate limited the request",
                self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code >= 500:
            raise NetworkError(
                f"{self.name} returned HTTP {response.status_code}",
                self.name,
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise ProviderError(
                f"{self.name} returned HTTP {response.status_code}",
                self.name,
                details={"status_code": response.status_code, "url": url},
            )
        return response

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Execute a request with rate limiting and retries."""
        retry = ExponentialBackoffRetry(self.retry_config)
        try:
            return await retry.execute(self._attempt, method, url, **kwargs)
        except ProviderError as e:
            logger.error("API error", source=self.name, url=url, error=e.message, attempts=retry.attempt_count)
            raise

    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``url`` and decode the JSON body."""
        response = await self.request("GET", url, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned invalid JSON", self.name, details={"url": url}) from e
