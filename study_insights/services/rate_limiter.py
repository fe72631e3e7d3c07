"""
Rate Limiter — In-memory sliding window per dashboard caller.

Resets on deploy/crash; each API worker keeps its own windows. Callers whose
window has gone quiet are swept out so the table only holds active tokens.
"""

from __future__ import annotations

import logging
import time
from collections import deque

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Counts requests per key over the last `window_seconds`."""

    def __init__(self, window_seconds: float = 60.0) -> None:
        self.window_seconds = window_seconds
        # key -> request timestamps, oldest first
        self._windows: dict[str, deque[float]] = {}
        self._last_sweep = time.monotonic()

    def __len__(self) -> int:
        return len(self._windows)

    def check(self, key: str, rpm_limit: int) -> bool:
        """Record a request for key. Returns False if it is over the limit."""
        now = time.monotonic()
        cutoff = now - self.window_seconds

        if now - self._last_sweep >= self.window_seconds:
            self._sweep(cutoff)
            self._last_sweep = now

        hits = self._windows.setdefault(key, deque())
        while hits and hits[0] <= cutoff:
            hits.popleft()

        if len(hits) >= rpm_limit:
            logger.warning("Rate limit hit: %s (%d RPM)", key, rpm_limit)
            return False

        hits.append(now)
        return True

    def _sweep(self, cutoff: float) -> None:
        idle = [key for key, hits in self._windows.items() if not hits or hits[-1] <= cutoff]
        for key in idle:
            del self._windows[key]
        if idle:
            logger.debug("Rate limiter: evicted %d idle keys", len(idle))

    def reset(self) -> None:
        """Forget every window (tests)."""
        self._windows.clear()
        self._last_sweep = time.monotonic()


_rate_limiter: SlidingWindowRateLimiter | None = None


def get_rate_limiter() -> SlidingWindowRateLimiter:
    """Process-wide limiter used by the rate_limit dependency."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = SlidingWindowRateLimiter()
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Drop the process-wide limiter (tests)."""
    global _rate_limiter
    _rate_limiter = None
