"""In-memory login rate limiting."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass
class _Window:
    count: int
    window_reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


class LoginRateLimiter:
    """Fixed-window attempt counter per client address.

    Single-process only: records live in memory and reset on restart.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: int = 3600,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._windows: Dict[str, _Window] = {}

    def hit(self, key: str) -> RateLimitDecision:
        """Count one attempt for ``key`` unless the window is already full."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or window.window_reset_at < now:
                window = _Window(count=0, window_reset_at=now + self.window_seconds)
                self._windows[key] = window

            if window.count >= self.max_attempts:
                return RateLimitDecision(
                    allowed=False,
                    retry_after=max(1, math.ceil(window.window_reset_at - now)),
                )

            window.count += 1
            return RateLimitDecision(allowed=True)

    def remaining(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or window.window_reset_at < now:
                return self.max_attempts
            return max(0, self.max_attempts - window.count)

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)
