"""Windowed request-start limiter enforcing an external API quota."""

from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Callable, Deque


class WindowRateLimiter:
    """Allow at most ``requests_per_window`` starts in any ``window_duration`` span.

    The limiter remembers the grant times of the last ``requests_per_window``
    starts. A new start blocks until the oldest of those is at least
    ``window_duration`` old, so a burst of N starts is followed by a pause
    until the window that opened with the burst has elapsed.

    Windows are half-open: with the oldest remembered grant at ``t0``, the
    next start is allowed at exactly ``t0 + window_duration``. Every interval
    ``[t, t + window_duration)`` therefore holds at most N starts, while the
    closed interval ``[t0, t0 + window_duration]`` may hold N + 1.

    ``clock`` and ``sleep`` are injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        requests_per_window: int,
        window_duration: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if requests_per_window < 1:
            raise ValueError("requests_per_window must be >= 1")
        if window_duration < 0:
            raise ValueError("window_duration must be >= 0")
        self.requests_per_window = requests_per_window
        self.window_duration = window_duration
        self._clock = clock
        self._sleep = sleep
        self._grants: Deque[float] = deque(maxlen=requests_per_window)
        self._lock = Lock()

    def wait_time(self, now: float | None = None) -> float:
        """Seconds until another start is allowed (0.0 if allowed now)."""

        with self._lock:
            return self._wait_time(self._clock() if now is None else now)

    def _wait_time(self, now: float) -> float:
        # caller holds self._lock
        if len(self._grants) < self.requests_per_window:
            return 0.0
        return max(0.0, self._grants[0] + self.window_duration - now)

    def acquire(self) -> float:
        """Block until a start is allowed and return the grant time."""

        # callers queue behind the sleeping holder
        with self._lock:
            delay = self._wait_time(self._clock())
            while delay > 0:
                self._sleep(delay)
                delay = self._wait_time(self._clock())
            granted_at = self._clock()
            self._grants.append(granted_at)
            return granted_at

    def reset(self) -> None:
        with self._lock:
            self._grants.clear()


__all__ = ["WindowRateLimiter"]
