"""
In-memory fixed-window rate limiter.
WARNING: This is single-instance only and counters are lost on restart.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

MAX_TRACKED_KEYS = 10000


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_in: float  # seconds until the current window closes


class InMemoryRateLimiter:
    """Per-key request counter using fixed time windows"""

    def __init__(self, max_requests: int, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self.windows: Dict[str, Tuple[int, float]] = {}  # key -> (count, reset_at)
        self.lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def _cleanup_expired(self, now: float):
        """Drop closed windows once the table grows large"""
        self.windows = {k: v for k, v in self.windows.items() if v[1] > now}

    def hit(self, key: str) -> RateLimitResult:
        """Count one request for key and report whether it is allowed"""
        with self.lock:
            now = self.clock()

            if len(self.windows) > MAX_TRACKED_KEYS:
                self._cleanup_expired(now)

            entry = self.windows.get(key)
            if entry is None or entry[1] <= now:
                self.windows[key] = (1, now + self.window_seconds)
                return RateLimitResult(True, self.max_requests - 1, self.window_seconds)

            count, reset_at = entry
            if count >= self.max_requests:
                return RateLimitResult(False, 0, reset_at - now)

            count += 1
            self.windows[key] = (count, reset_at)
            return RateLimitResult(True, self.max_requests - count, reset_at - now)

    def reset(self, key: str):
        with self.lock:
            self.windows.pop(key, None)
