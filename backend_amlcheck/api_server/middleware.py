"""
HTTP middleware: request logging and per-client rate limiting.

RateLimitMiddleware is a fixed window per client IP (default 100 requests per
15 minutes). Over the limit the request is answered with 429 and a JSON body
in the same {"detail", "code"} shape as every other error. /health is exempt.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from backend_amlcheck.amlcheck_logging import get_logger

logger = get_logger(__name__)

RATE_LIMIT_EXEMPT_PATHS = ("/health",)
RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        max_requests: int = 100,
        window_sec: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_sec = window_sec
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()
        self._last_prune = clock()

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self.window_sec:
            return
        self._last_prune = now
        stale = [ip for ip, (start, _) in self._windows.items() if now - start >= self.window_sec]
        for ip in stale:
            del self._windows[ip]

    def hit(self, ip: str) -> tuple[bool, int, float]:
        """Count one request for ip. Returns (allowed, remaining, seconds until reset)."""
        now = self._clock()
        with self._lock:
            self._prune(now)
            start, count = self._windows.get(ip, (now, 0))
            if now - start >= self.window_sec:
                start, count = now, 0
            count += 1
            self._windows[ip] = (start, count)
        reset_in = max(0.0, start + self.window_sec - now)
        return count <= self.max_requests, max(0, self.max_requests - count), reset_in

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in RATE_LIMIT_EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        ip = client_ip(request)
        allowed, remaining, reset_in = self.hit(ip)
        headers = {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(remaining),
            "RateLimit-Reset": str(int(reset_in)),
        }
        if not allowed:
            logger.warning("rate_limit_exceeded", client_ip=ip, path=request.url.path)
            headers["Retry-After"] = str(int(reset_in) + 1)
            return JSONResponse(
                status_code=429,
                content={"detail": RATE_LIMIT_MESSAGE, "code": "rate_limited"},
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
