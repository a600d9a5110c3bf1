"""Token-bucket throttle shared by the panel API clients.

The panel enforces a per-key request budget; the aggregator fans out one
request per visible server, so calls are paced here rather than left to
trip the panel's 429 responses.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Optional


class RateLimiter:
    """Allow at most ``max_calls`` acquisitions per ``period_seconds``.

    Tokens refill continuously; :meth:`acquire` blocks the calling thread
    until one is available, so a single limiter can be shared by every
    worker in a fan-out.
    """

    def __init__(
        self,
        max_calls: int,
        period_seconds: float,
        *,
        time_fn: Optional[Callable[[], float]] = None,
        sleep_fn: Optional[Callable[[float], None]] = None,
    ) -> None:
        if max_calls <= 0:
            raise ValueError("max_calls must be positive.")
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive.")

        self._capacity = float(max_calls)
        self._refill_rate = self._capacity / float(period_seconds)
        self._clock = time_fn or time.monotonic
        self._sleep = sleep_fn or time.sleep

        self._lock = threading.Lock()
        self._available = self._capacity
        self._updated_at = self._clock()

    @classmethod
    def per_minute(cls, max_calls: int) -> "RateLimiter":
        """Build a limiter for budgets expressed as requests per minute."""
        return cls(max_calls=max_calls, period_seconds=60.0)

    @property
    def available(self) -> float:
        with self._lock:
            self._refill(self._clock())
            return self._available

    def acquire(self) -> None:
        """Block until a token can be taken."""
        while True:
            with self._lock:
                self._refill(self._clock())
                if self._available >= 1.0:
                    self._available -= 1.0
                    return
                wait_seconds = (1.0 - self._available) / self._refill_rate

            # Sleep without the lock so other workers can refill and take.
            self._sleep(wait_seconds)

    def _refill(self, now: float) -> None:
        elapsed = now - self._updated_at
        if elapsed <= 0:
            return
        self._available = min(
            self._capacity,
            self._available + elapsed * self._refill_rate,
        )
        self._updated_at = now
