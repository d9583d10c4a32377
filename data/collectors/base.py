"""Base collector with retry, backoff and rate limiting."""

import aiohttp
import structlog
from abc import ABC, abstractmethod
from typing import Any
from data.rate_limiter import RateLimiter
from utils.retry import async_retry

log = structlog.get_logger(__name__)


class NonRetryableError(Exception):
    """Raised for HTTP errors that should NOT be retried (401, 403, 404, 429)."""

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        super().__init__(message)


class BaseCollector(ABC):
    """Abstract base class for remote data sources."""

    api_name: str = "unknown"
    user_agent: str = "github-profiler/0.1"

    def __init__(self, rate_limiter: RateLimiter) -> None:
        self.rate_limiter = rate_limiter
        self._session: aiohttp.ClientSession | None = None

    def default_headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent}

    async def get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=30),
                headers=self.default_headers(),
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    @async_retry(max_retries=3, base_delay=1.0, exceptions=(aiohttp.ClientError, TimeoutError))
    async def _request(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any] | list[Any]:
        """Make a rate-limited HTTP GET request with retry."""
        await self.rate_limiter.acquire(self.api_name)
        session = await self.get_session()

        async with session.get(url, params=params, headers=headers) as resp:
            self.rate_limiter.update_from_headers(self.api_name, resp.headers)
            if resp.status in (401, 403, 429):
                log.warning("non_retryable_http_error", api=self.api_name, status=resp.status, url=url)
                raise NonRetryableError(resp.status, f"HTTP {resp.status} for {url}")
            if resp.status == 404:
                raise NonRetryableError(resp.status, f"HTTP 404 for {url}")
            resp.raise_for_status()
            return await resp.json()

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the API is reachable."""
        ...
