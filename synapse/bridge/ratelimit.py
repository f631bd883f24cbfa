"""In-memory sliding-window rate limiter.

Several windows are enforced independently (e.g. a short burst window and an
hourly window); a request is admitted only if every window has room.  State
is per-process and resets on restart.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from loguru import logger


@dataclass(frozen=True)
class Window:
    limit: int
    seconds: float


class RateLimiter:
    """Track request timestamps per requester key."""

    def __init__(self, windows: Sequence[Window], *, clock: Callable[[], float] = time.monotonic) -> None:
        if not windows:
            msg = "RateLimiter needs at least one window"
            raise ValueError(msg)
        self.windows = tuple(windows)
        self._horizon = max(w.seconds for w in self.windows)
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._next_sweep = clock() + self._horizon

    def retry_after(self, key: str) -> float | None:
        """Seconds until ``key`` may proceed, or ``None`` if it may now."""
        now = self._clock()
        hits = self._prune(key, now)
        wait = 0.0
        for window in self.windows:
            if window.limit <= 0:
                wait = max(wait, window.seconds)
                continue
            recent = [t for t in hits if t > now - window.seconds]
            if len(recent) >= window.limit:
                oldest_blocking = recent[len(recent) - window.limit]
                wait = max(wait, oldest_blocking + window.seconds - now)
        return wait if wait > 0 else None

    def hit(self, key: str) -> float | None:
        """Record a request if allowed.  Returns the retry delay when rejected."""
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
        wait = self.retry_after(key)
        if wait is not None:
            return wait
        self._hits.setdefault(key, deque()).append(self._clock())
        return None

    def _prune(self, key: str, now: float) -> deque[float]:
        hits = self._hits.get(key)
        if hits is None:
            return deque()
        while hits and hits[0] <= now - self._horizon:
            hits.popleft()
        if not hits:
            del self._hits[key]
        return hits

    def _sweep(self, now: float) -> None:
        """Forget requesters with no hit inside the longest window."""
        cutoff = now - self._horizon
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]
        self._next_sweep = now + self._horizon
        if stale:
            logger.debug("RateLimiter: forgot {} idle requesters", len(stale))

    def __len__(self) -> int:
        return len(self._hits)
