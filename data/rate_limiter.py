"""Sliding window rate limiter that also honors server-reported quotas."""

import asyncio
import time
from collections import defaultdict
from collections.abc import Mapping

import structlog

log = structlog.get_logger(__name__)


class RateLimiter:
    """Per-API sliding window limiter.

    GitHub reports its remaining quota in X-RateLimit-* headers; once the
    server says the quota is spent, acquire() waits until the reset time.
    """

    def __init__(self, window_seconds: float = 60.0) -> None:
        self.window_seconds = window_seconds
        self._windows: dict[str, list[float]] = defaultdict(list)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._limits: dict[str, int] = {}
        # api_name -> wall-clock epoch when the server quota resets
        self._blocked_until: dict[str, float] = {}

    def configure(self, api_name: str, requests_per_window: int) -> None:
        """Set rate limit for an API."""
        self._limits[api_name] = requests_per_window

    async def acquire(self, api_name: str) -> None:
        """Wait until a request slot is available."""
        limit = self._limits.get(api_name, 60)
        async with self._locks[api_name]:
            blocked_until = self._blocked_until.pop(api_name, 0.0)
            server_wait = blocked_until - time.time()
            if server_wait > 0:
                log.warning("rate_limit_exhausted", api=api_name, wait_seconds=round(server_wait, 1))
                await asyncio.sleep(server_wait)

            now = time.monotonic()
            window = self._windows[api_name]
            window[:] = [t for t in window if now - t < self.window_seconds]

            if len(window) >= limit:
                wait_time = self.window_seconds - (now - window[0])
                if wait_time > 0:
                    log.info("rate_limit_throttle", api=api_name, wait_seconds=round(wait_time, 1))
                    await asyncio.sleep(wait_time)
                    now = time.monotonic()
                    window[:] = [t for t in window if now - t < self.window_seconds]

            window.append(time.monotonic())

    def update_from_headers(self, api_name: str, headers: Mapping[str, str]) -> None:
        """Record X-RateLimit-Remaining / X-RateLimit-Reset from a response."""
        remaining = headers.get("X-RateLimit-Remaining")
        reset = headers.get("X-RateLimit-Reset")
        if remaining is None or reset is None:
            return
        try:
            if int(remaining) <= 0:
                self._blocked_until[api_name] = float(reset)
        except ValueError:
            log.debug("rate_limit_headers_unparseable", api=api_name, remaining=remaining, reset=reset)
