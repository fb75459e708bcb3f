"""Minimum-interval pacing shared across worker threads."""

import threading
import time
from typing import Callable, Optional


class RateLimiter:
    """Block callers so that consecutive calls are at least ``min_interval`` apart.

    The lock is held while sleeping, so parallel callers queue up behind
    each other and the spacing holds in aggregate.
    """

    def __init__(
        self,
        min_interval: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval = max(0.0, min_interval)
        self._sleep = sleep
        self._clock = clock
        self._last: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Wait for the next slot and return how long we slept."""
        with self._lock:
            waited = 0.0
            if self._last is not None and self.min_interval > 0:
                remaining = self._last + self.min_interval - self._clock()
                if remaining > 0:
                    self._sleep(remaining)
                    waited = remaining
            self._last = self._clock()
            return waited

    def reset(self):
        with self._lock:
            self._last = None
