"""Request pacing for the external registry."""
from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass


@dataclass
class RateLimitConfig:
    max_calls: int = 1
    window_seconds: float = 1.0
    min_interval: float = 0.0  # spacing between consecutive calls

    @classmethod
    def spacing(cls, seconds: float) -> RateLimitConfig:
        """One call at a time with at least ``seconds`` between calls."""
        return cls(max_calls=1, window_seconds=seconds, min_interval=seconds)


class AsyncRateLimiter:
    """Sliding-window limiter that also enforces a minimum gap between calls.

    The first call never waits.
    """

    def __init__(self, cfg: RateLimitConfig, clock=time.monotonic) -> None:
        self.cfg = cfg
        self._clock = clock
        self._lock = asyncio.Lock()
        self._window: deque[float] = deque()
        self._last: float | None = None

    def delay_for(self, now: float) -> float:
        """Seconds a call made at ``now`` must wait."""
        if self._last is None:
            return 0.0
        gap = self.cfg.min_interval - (now - self._last)
        while self._window and self._window[0] < now - self.cfg.window_seconds:
            self._window.popleft()
        full = 0.0
        if len(self._window) >= self.cfg.max_calls:
            full = self._window[0] + self.cfg.window_seconds - now
        return max(0.0, gap, full)

    async def acquire(self) -> None:
        async with self._lock:
            delay = self.delay_for(self._clock())
            if delay > 0:
                await asyncio.sleep(delay)
            self._last = self._clock()
            self._window.append(self._last)
            while len(self._window) > max(1, self.cfg.max_calls):
                self._window.popleft()
