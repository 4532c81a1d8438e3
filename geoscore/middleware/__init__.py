"""HTTP middleware and request guards."""

from geoscore.middleware.rate_limit import (
    FixedWindowRateLimiter,
    RateLimit,
    auth_limiter,
    auth_rate_limit,
    client_ip,
    job_limiter,
    job_rate_limit,
)

__all__ = [
    "FixedWindowRateLimiter",
    "RateLimit",
    "auth_limiter",
    "auth_rate_limit",
    "client_ip",
    "job_limiter",
    "job_rate_limit",
]
