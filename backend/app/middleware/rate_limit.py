"""
XFound Backend — Rate Limiting Middleware
===========================================

What:  Per-client sliding window limit on HTTP requests.
Why:   Signup, login and forgot-password are public; the limit bounds
       credential stuffing and reset-mail spam from a single address.
How:   A deque of request timestamps per client; timestamps older than
       RATE_LIMIT_WINDOW are dropped from the left before each check.

Client key:
    The first X-Forwarded-For hop when present (the app runs behind the
    hosting provider's proxy), otherwise the socket peer address.

The limiter is per process. With several workers each enforces its own
window.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings
from app.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

# Drop idle clients every this many requests
_SWEEP_EVERY = 1000


def client_key(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding window limiter (RATE_LIMIT_REQUESTS per RATE_LIMIT_WINDOW seconds).

    Health checks, API docs and listing images are never limited.
    """

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}
    EXCLUDED_PREFIXES = ("/api/files/",)

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._seen = 0

    def _is_excluded(self, path: str) -> bool:
        return path in self.EXCLUDED_PATHS or path.startswith(self.EXCLUDED_PREFIXES)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if self._is_excluded(request.url.path):
            return await call_next(request)

        key = client_key(request)
        now = time.monotonic()
        window_start = now - settings.rate_limit_window

        hits = self._hits[key]
        while hits and hits[0] <= window_start:
            hits.popleft()

        if len(hits) >= settings.rate_limit_requests:
            retry_after = int(hits[0] + settings.rate_limit_window - now) + 1
            exc = RateLimitExceededError(retry_after=retry_after)
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds window",
                key, len(hits), settings.rate_limit_window,
            )
            # BaseHTTPMiddleware runs outside the app's exception handlers,
            # so the 429 body is built here
            return JSONResponse(
                status_code=429,
                content={"error": exc.code, "message": exc.message, "details": exc.context},
                headers={"Retry-After": str(retry_after)},
            )

        hits.append(now)

        self._seen += 1
        if self._seen % _SWEEP_EVERY == 0:
            self._sweep(window_start)

        return await call_next(request)

    def _sweep(self, window_start: float) -> None:
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in idle:
            del self._hits[key]
        if idle:
            logger.debug("Dropped %d idle rate-limit entries", len(idle))
