from __future__ import annotations

import math
import time
from threading import Lock
from typing import Callable, Dict, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

# Expired windows are swept once the table grows past this many clients.
_SWEEP_THRESHOLD = 10_000


class FixedWindowRateLimiter:
    """
    Thread-safe per-client request counter over fixed windows.

    A client's window opens with its first request and lasts ``window_seconds``;
    at most ``max_requests`` requests are admitted inside it.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = Lock()
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str) -> Tuple[bool, int, float]:
        """
        Count one request for ``key``.

        Returns (allowed, remaining requests in the window, seconds until the window resets).
        """
        now = self._clock()
        with self._lock:
            if len(self._windows) > _SWEEP_THRESHOLD:
                self._sweep(now)

            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)

        reset_in = max(self.window_seconds - (now - started), 0.0)
        return count <= self.max_requests, max(self.max_requests - count, 0), reset_in

    def _sweep(self, now: float) -> None:
        expired = [k for k, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for k in expired:
            del self._windows[k]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject clients that exceed the limiter's budget with 429."""

    def __init__(self, app, limiter: FixedWindowRateLimiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        client = request.client.host if request.client else "anonymous"
        allowed, remaining, reset_in = self.limiter.hit(client)
        headers = {
            "X-RateLimit-Limit": str(self.limiter.max_requests),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(math.ceil(reset_in)),
        }
        if not allowed:
            headers["Retry-After"] = str(math.ceil(reset_in))
            return JSONResponse(status_code=429, content={"error": "Too Many Requests"}, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response
