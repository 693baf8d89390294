"""
Per-user fixed-window rate limiting for Google API usage.

The window opens on a key's first hit and lasts window_ms. Within it
exactly `limit` hits are allowed; later hits are refused without being
counted, until the window has passed and a new one opens.

Counters are process-local and guarded by a lock; each instance of
the service throttles independently.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class RateWindow:
    count: int
    reset_at: float  # epoch ms


class FixedWindowRateLimiter:
    """Fixed-window counters keyed by user."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def hit(self, key: str, limit: int, window_ms: int) -> bool:
        """Count a hit for key. Returns False when the window is exhausted."""
        with self._lock:
            now = self._now_ms()
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                window = RateWindow(count=0, reset_at=now + window_ms)
                self._windows[key] = window

            if window.count >= limit:
                return False

            window.count += 1
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def get(self, key: str) -> RateWindow | None:
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                return None
            return RateWindow(count=window.count, reset_at=window.reset_at)

    def clear_expired(self) -> int:
        """Drop windows that have run out. Returns count removed."""
        with self._lock:
            now = self._now_ms()
            expired = [key for key, w in self._windows.items() if now > w.reset_at]
            for key in expired:
                del self._windows[key]
            return len(expired)
