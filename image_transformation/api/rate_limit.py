"""
Rate Limiting Middleware

Sliding-window limiter keyed by client IP. Only requests under a path prefix
are counted; everything else passes straight through.
"""

import time
from collections import deque
from threading import Lock
from typing import Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from image_transformation.core.exceptions import error_response
from image_transformation.core.logging import get_logger
from image_transformation.core.metrics import record_rate_limited

logger = get_logger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, please try again later"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        path_prefix: str = "/api/images",
        max_requests: int = 20,
        window_seconds: int = 60,
        enabled: bool = True
    ):
        super().__init__(app)
        self.path_prefix = path_prefix
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._lock = Lock()
        self._buckets: Dict[str, Deque[float]] = {}
        self._last_sweep = 0.0

    def allow(self, key: str, now: Optional[float] = None) -> bool:
        """Record a hit for `key` and report whether it fits in the window."""
        now = time.time() if now is None else now
        window_start = now - float(self.window_seconds)

        with self._lock:
            # Idle clients are dropped once per window so the table stays bounded
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(window_start)
                self._last_sweep = now

            bucket = self._buckets.get(key) or deque()
            while bucket and bucket[0] <= window_start:
                bucket.popleft()
            if len(bucket) >= self.max_requests:
                if not bucket:
                    self._buckets.pop(key, None)
                return False
            bucket.append(now)
            self._buckets[key] = bucket
            return True

    def _sweep(self, window_start: float) -> None:
        stale = [key for key, bucket in self._buckets.items() if not bucket or bucket[-1] <= window_start]
        for key in stale:
            del self._buckets[key]

    async def dispatch(self, request: Request, call_next):
        if not self.enabled or not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        key = request.client.host if request.client else "anonymous"

        if not self.allow(key):
            record_rate_limited()
            logger.warning("rate_limited", client=key, path=request.url.path)
            return error_response(
                RATE_LIMIT_MESSAGE,
                429,
                headers={"Retry-After": str(self.window_seconds)}
            )

        return await call_next(request)
