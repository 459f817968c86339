"""Sliding-window request limiter for the generation endpoints."""
import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

from fastapi import Request

from matura.core.errors import RateLimitError

log = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """At most ``max_requests`` per ``window_seconds`` for each client key."""

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def _prune(self, bucket: Deque[float], now: float) -> None:
        while bucket and bucket[0] <= now - self.window_seconds:
            bucket.popleft()

    def _sweep(self, now: float) -> None:
        """Drop buckets of clients that have been idle for a whole window."""
        for key in list(self._buckets):
            self._prune(self._buckets[key], now)
            if not self._buckets[key]:
                del self._buckets[key]
        self._last_sweep = now

    def hit(self, key: str) -> int:
        """Count one request for ``key``; returns what is left in the window."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            bucket = self._buckets.setdefault(key, deque())
            self._prune(bucket, now)
            if len(bucket) >= self.max_requests:
                retry_after = max(1, int(bucket[0] + self.window_seconds - now + 0.999))
                log.warning("Rate limit hit for %s, retry in %ss", key, retry_after)
                raise RateLimitError(retry_after)
            bucket.append(now)
            return self.max_requests - len(bucket)

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._buckets)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


def client_key(request: Request, trust_forwarded_for: bool = False) -> str:
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
