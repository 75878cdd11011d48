"""Summary: In-process sliding-window rate limiter.

Importance: Caps how often one user can hit the chat endpoint, and therefore the LLM.
Alternatives: Use Redis-backed limiting shared across processes.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, MutableMapping


class RateLimiter:
    """Summary: Allows at most `limit` calls per key inside a rolling window.

    Importance: State is process-local and resets on restart.
    Alternatives: A fixed-window counter, which allows bursts at window edges.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        storage: MutableMapping[str, deque[float]] | None = None,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._hits: MutableMapping[str, deque[float]] = storage if storage is not None else {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        """Record a call for `key` and return False if it exceeds the limit."""

        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= now - self._window:
                hits.popleft()
            if len(hits) >= self._limit:
                return False
            hits.append(now)
            return True

    def remaining(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            hits = self._hits.get(key, deque())
            active = sum(1 for hit in hits if hit > now - self._window)
        return max(0, self._limit - active)
