"""Per-caller sliding-window request quota.

The window map lives for the process lifetime and is shared by every
in-flight request on this instance. Each key has its own ``asyncio.Lock`` so
the prune/count/append sequence for one caller never interleaves; a
multi-instance deployment still needs an external atomic counter store.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_LIMIT = 10

# Sweep idle keys once the map grows past this many entries.
_SWEEP_THRESHOLD = 10_000


@dataclass(frozen=True)
class RateDecision:
    """Outcome of a single admission check."""

    admitted: bool
    limit: int
    remaining: int
    retry_after: float = 0.0


class SlidingWindowRateLimiter:
    """Admit a request iff fewer than ``limit`` admissions fall in the window."""

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        sweep_threshold: int = _SWEEP_THRESHOLD,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, deque[float]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._sweep_floor = sweep_threshold
        self._next_sweep = sweep_threshold

    def __len__(self) -> int:
        return len(self._windows)

    async def check(self, key: str) -> RateDecision:
        """Check and, when admitted, record one request for ``key``."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            now = self._clock()
            window = self._windows.setdefault(key, deque())
            self._prune(window, now)

            if len(window) >= self.limit:
                retry_after = max(0.0, self.window_seconds - (now - window[0]))
                logger.warning(
                    "Rate limit hit for %s (%d in %.0fs window)",
                    key,
                    len(window),
                    self.window_seconds,
                )
                return RateDecision(
                    admitted=False,
                    limit=self.limit,
                    remaining=0,
                    retry_after=retry_after,
                )

            window.append(now)
            decision = RateDecision(
                admitted=True,
                limit=self.limit,
                remaining=self.limit - len(window),
            )

        if len(self._windows) > self._next_sweep:
            self.sweep()
            # Keys still live after a sweep push the next one out.
            self._next_sweep = max(self._sweep_floor, 2 * len(self._windows))
        return decision

    def count(self, key: str) -> int:
        """Number of admissions for ``key`` still inside the window."""
        window = self._windows.get(key)
        if not window:
            return 0
        self._prune(window, self._clock())
        return len(window)

    def sweep(self) -> int:
        """Drop keys whose windows are empty after pruning. Returns keys dropped."""
        now = self._clock()
        stale = []
        for key, window in self._windows.items():
            self._prune(window, now)
            lock = self._locks.get(key)
            if not window and (lock is None or not lock.locked()):
                stale.append(key)
        for key in stale:
            self._windows.pop(key, None)
            self._locks.pop(key, None)
        if stale:
            logger.debug("Swept %d idle rate-limit keys", len(stale))
        return len(stale)

    def _prune(self, window: deque[float], now: float) -> None:
        while window and now - window[0] >= self.window_seconds:
            window.popleft()
