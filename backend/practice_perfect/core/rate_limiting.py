"""Rate limiting for sign-in endpoints.

Two layers, both fixed-window:
- Per IP: slowapi decorators on the auth routes.
- Per email: EmailThrottle, built on the ``limits`` library that backs
  slowapi. The email only exists after the body is parsed, so these checks
  run inside the issuer and verifier rather than as route decorators.

Both layers share RATE_LIMIT_STORAGE_URI. The default in-memory storage is
per process; point it at Redis for multi-instance deployments. Replay
protection never depends on this module, only brute-force resistance does.

Usage in routers:
    from practice_perfect.core.rate_limiting import limiter

    @router.post("/login")
    @limiter.limit(settings.rate_limit_login_ip)
    async def login(request: Request, ...):
        ...
"""

import time

from fastapi import Request, Response
from limits import parse
from limits.storage import Storage, storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from practice_perfect.core.config import settings
from practice_perfect.core.errors import RateLimitedError

# Global per-IP limiter instance
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)


def _retry_after_seconds(request: Request, exc: RateLimitExceeded) -> int:
    """Seconds until the exceeded per-IP window resets.

    slowapi records the failed limit and its storage keys on
    ``request.state.view_rate_limit``. Without it, fall back to the full
    window length of the limit.
    """
    view_limit = getattr(request.state, "view_rate_limit", None)
    if view_limit is not None:
        limit_item, identifiers = view_limit
        reset_time, _remaining = limiter.limiter.get_window_stats(
            limit_item, *identifiers
        )
        return max(1, int(reset_time - time.time()))
    return max(1, exc.limit.limit.get_expiry())


def rate_limit_exceeded_handler(
    request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle per-IP rate limit exceeded errors.

    Returns 429 Too Many Requests with the standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMITED",
                "message": f"Rate limit exceeded: {exc.detail}",
            }
        },
        headers={"Retry-After": str(_retry_after_seconds(request, exc))},
    )


class EmailThrottle:
    """Fixed-window attempt counter keyed by email address.

    Args:
        limit: Limit string, e.g. "5/15minutes".
        namespace: Separates counters of different throttles in shared storage.
        storage_uri: limits storage URI ("memory://", "redis://host:6379", ...).
        enabled: When False, hit() never raises.
    """

    def __init__(
        self,
        limit: str,
        *,
        namespace: str,
        storage_uri: str = "memory://",
        enabled: bool = True,
    ) -> None:
        self._limit = parse(limit)
        self._namespace = namespace
        self._storage: Storage = storage_from_string(storage_uri)
        self._limiter = FixedWindowRateLimiter(self._storage)
        self.enabled = enabled

    def hit(self, email: str) -> None:
        """Record one attempt for ``email``.

        Raises:
            RateLimitedError: If the attempt exceeds the current window.
        """
        if not self.enabled:
            return
        if self._limiter.hit(self._limit, self._namespace, email):
            return
        reset_time, _remaining = self._limiter.get_window_stats(
            self._limit, self._namespace, email
        )
        raise RateLimitedError(retry_after=max(1, int(reset_time - time.time())))

    def reset(self) -> None:
        """Clear all counters in this throttle's storage."""
        self._storage.reset()


issue_throttle = EmailThrottle(
    settings.rate_limit_issue_per_email,
    namespace="sign-in-issue",
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)

verify_throttle = EmailThrottle(
    settings.rate_limit_verify_per_email,
    namespace="sign-in-verify",
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)
