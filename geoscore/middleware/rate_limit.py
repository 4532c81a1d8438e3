"""
Per-client request limits for the HTTP API.

Limits are fixed windows keyed by client IP and held in process memory, so
each worker process counts separately. ``X-Forwarded-For`` is only read
when ``trust_proxy`` is set.
"""

import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, Callable

from fastapi import Depends, HTTPException, Request

from geoscore.config import Settings, get_settings

logger = logging.getLogger(__name__)


def client_ip(request: Request, trust_proxy: bool = False) -> str:
    """Socket peer, or the first ``X-Forwarded-For`` hop behind a trusted proxy."""
    forwarded = request.headers.get("x-forwarded-for") if trust_proxy else None
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


@dataclass
class Window:
    started_at: float
    count: int = 0


class FixedWindowRateLimiter:
    """
    Counts hits per key inside windows of ``window_seconds``.

    Expired windows are swept at most once per window length.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        message: str,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.message = message
        self.clock = clock
        self._windows: dict[str, Window] = {}
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        expired = [
            key for key, window in self._windows.items() if now - window.started_at >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]

    def _window(self, key: str) -> Window:
        """Current window for ``key``; a fresh one is not stored until it is hit."""
        now = self.clock()
        self._sweep(now)
        window = self._windows.get(key)
        if window is None or now - window.started_at >= self.window_seconds:
            return Window(started_at=now)
        return window

    def hit(self, key: str) -> int:
        """Count one request and return the total in the current window."""
        window = self._windows[key] = self._window(key)
        window.count += 1
        return window.count

    def remaining(self, key: str) -> int:
        return max(0, self.limit - self._window(key).count)

    def retry_after(self, key: str) -> int:
        window = self._window(key)
        return max(1, int(window.started_at + self.window_seconds - self.clock()))

    def is_exceeded(self, key: str) -> bool:
        return self._window(key).count >= self.limit

    def reject(self, key: str) -> HTTPException:
        logger.warning(f"Rate limit exceeded for {key}: {self.limit}/{self.window_seconds}s")
        return HTTPException(
            status_code=429,
            detail={"error": "Too many requests", "message": self.message},
            headers={"Retry-After": str(self.retry_after(key))},
        )

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)


class RateLimit:
    """
    FastAPI dependency enforcing a limiter for the route it guards.

    With ``failures_only`` a request is counted only when the route raises an
    ``HTTPException`` with an error status, so successful logins never use up
    the allowance.
    """

    def __init__(self, limiter: FixedWindowRateLimiter, failures_only: bool = False):
        self.limiter = limiter
        self.failures_only = failures_only

    async def __call__(
        self,
        request: Request,
        settings: Settings = Depends(get_settings),
    ) -> AsyncIterator[None]:
        key = client_ip(request, settings.trust_proxy)

        if self.limiter.is_exceeded(key):
            raise self.limiter.reject(key)

        if not self.failures_only:
            self.limiter.hit(key)
            yield
            return

        try:
            yield
        except HTTPException as exc:
            if exc.status_code >= 400:
                self.limiter.hit(key)
            raise


auth_limiter = FixedWindowRateLimiter(
    limit=5,
    window_seconds=15 * 60,
    message="Too many authentication attempts. Please try again in 15 minutes.",
)
job_limiter = FixedWindowRateLimiter(
    limit=10,
    window_seconds=60,
    message="Too many analysis requests. Please wait a minute before trying again.",
)

auth_rate_limit = RateLimit(auth_limiter, failures_only=True)
job_rate_limit = RateLimit(job_limiter)
