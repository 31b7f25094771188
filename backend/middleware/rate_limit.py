"""Rate limiting middleware for the GrazeTrack API."""

import re
import time
from collections import defaultdict
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from backend.errors import error_response

# POST routes that accept file uploads
_UPLOAD_ROUTES = (
    re.compile(r"^/api/ranches/?$"),
    re.compile(r"^/api/standard-medications/?$"),
    re.compile(r"^/api/animals/[^/]+/(photos|documents)/?$"),
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Simple in-memory sliding-window rate limiter.

    Limits are per process; run a shared store if the API is scaled out.
    """

    # Prune stale client keys every 5 minutes
    _CLEANUP_INTERVAL = 300

    def __init__(self, app, requests_per_minute: int = 120, upload_requests_per_minute: int = 20):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.upload_requests_per_minute = upload_requests_per_minute
        self._requests: dict[str, list[float]] = defaultdict(list)
        self._last_cleanup = time.time()

    def _get_client_id(self, request: Request) -> str:
        """Get a client identifier from the request."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    def _is_upload_route(self, request: Request) -> bool:
        if request.method != "POST":
            return False
        return any(pattern.match(request.url.path) for pattern in _UPLOAD_ROUTES)

    def _cleanup_stale_keys(self) -> None:
        """Remove client keys with no recent requests."""
        now = time.time()
        if now - self._last_cleanup < self._CLEANUP_INTERVAL:
            return
        self._last_cleanup = now
        window_start = now - 60
        stale_keys = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for key in stale_keys:
            del self._requests[key]

    def _check_rate(self, client_id: str, limit: int) -> bool:
        """Check if client is within rate limit."""
        now = time.time()
        window_start = now - 60  # 1-minute window

        self._requests[client_id] = [
            t for t in self._requests[client_id] if t > window_start
        ]

        if len(self._requests[client_id]) >= limit:
            return False

        self._requests[client_id].append(now)
        return True

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip rate limiting for health checks and preflight
        if request.url.path == "/api/health" or request.method == "OPTIONS":
            return await call_next(request)

        self._cleanup_stale_keys()

        client_id = self._get_client_id(request)

        if self._is_upload_route(request):
            if not self._check_rate(f"{client_id}:upload", self.upload_requests_per_minute):
                return error_response(
                    429, "RATE_LIMITED", "Upload rate limit exceeded. Please wait before trying again."
                )

        if not self._check_rate(client_id, self.requests_per_minute):
            return error_response(429, "RATE_LIMITED", "Rate limit exceeded. Please wait before trying again.")

        return await call_next(request)
