"""
In-process sliding-window rate limiter.
One instance per throttled action, created at startup and kept on app.state.
"""

import time
from typing import Callable, Dict, List

from .exceptions import RateLimitedError


class RateLimiter:
    """Allows at most `max_attempts` hits per key within `window_seconds`."""

    def __init__(self, max_attempts: int, window_seconds: int, clock: Callable[[], float] = time.time):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, List[float]] = {}

    def allow(self, key: str) -> bool:
        now = self._clock()
        self._prune(now)
        hits = self._hits.get(key, [])
        if len(hits) >= self.max_attempts:
            return False
        hits.append(now)
        self._hits[key] = hits
        return True

    def _prune(self, now: float) -> None:
        """Drop expired hits and forget keys with none left."""
        for key in list(self._hits):
            hits = [t for t in self._hits[key] if now - t < self.window_seconds]
            if hits:
                self._hits[key] = hits
            else:
                del self._hits[key]

    def __len__(self) -> int:
        return len(self._hits)

    def reset(self, key: str) -> None:
        self._hits.pop(key, None)


def check_rate_limit(limiter: RateLimiter, key: str) -> None:
    """Record a hit for `key`, raising RateLimitedError when over the limit."""
    if not limiter.allow(key):
        raise RateLimitedError()
