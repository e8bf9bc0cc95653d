"""
REQUEST RATE LIMITING
=====================
Per-IP request limits for the API and for the credential endpoints.
"""

# FLOW:
# - Each request records a hit for its client IP.
# - Hits older than the window are dropped before counting.
# - A key at its limit is rejected until its oldest hit ages out.
# WHY:
# - Bounds credential stuffing and code guessing independently of the audit log.
# HOW:
# - In-memory timestamps per key, guarded by a lock (sync dependencies run in worker threads).

from __future__ import annotations

import math
import threading
import time
from collections import defaultdict, deque
from typing import Callable, Optional

from Security.security_config import SECURITY_SETTINGS


class RequestRateLimiter:
    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: int = 900,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits = defaultdict(deque)
        self._lock = threading.Lock()

    def _cleanup(self, key: str, now: float) -> None:
        hits = self._hits[key]
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if not hits:
            del self._hits[key]

    def allow(self, key: str) -> bool:
        """Record a hit for key; False when the key is already at its limit."""
        with self._lock:
            now = self.clock()
            self._cleanup(key, now)
            hits = self._hits[key]
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            return True

    def retry_after(self, key: str) -> int:
        """Whole seconds until the next hit for key would be accepted."""
        with self._lock:
            now = self.clock()
            self._cleanup(key, now)
            hits = self._hits.get(key)
            if not hits or len(hits) < self.max_requests:
                return 0
            return max(1, math.ceil(self.window_seconds - (now - hits[0])))

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


def create_api_limiter(settings: dict = SECURITY_SETTINGS) -> Optional[RequestRateLimiter]:
    if not settings["RATE_LIMIT_ENABLED"]:
        return None
    return RequestRateLimiter(
        max_requests=settings["API_RATE_LIMIT"],
        window_seconds=settings["RATE_LIMIT_WINDOW_MINUTES"] * 60,
    )


def create_auth_limiter(settings: dict = SECURITY_SETTINGS) -> Optional[RequestRateLimiter]:
    if not settings["RATE_LIMIT_ENABLED"]:
        return None
    return RequestRateLimiter(
        max_requests=settings["AUTH_RATE_LIMIT"],
        window_seconds=settings["RATE_LIMIT_WINDOW_MINUTES"] * 60,
    )
