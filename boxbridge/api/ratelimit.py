"""Fixed-window request limiter keyed by client address."""
from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP. Try again later."


class RateLimiter:
    """Allows ``max_requests`` per ``window`` seconds for each key.

    Counters live in process memory. Windows that have ended are swept at most
    once per window length.
    """

    def __init__(
        self,
        max_requests: int,
        window: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._next_sweep = clock() + window

    def _sweep(self, now: float) -> None:
        ended = [key for key, (started, _) in self._windows.items() if now - started >= self.window]
        for key in ended:
            del self._windows[key]
        self._next_sweep = now + self.window

    def hit(self, key: str) -> Optional[float]:
        """Count one request; return seconds until retry when over the limit."""

        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)

        started, count = self._windows.get(key, (now, 0))
        if now - started >= self.window:
            started, count = now, 0
        if count >= self.max_requests:
            retry_after = started + self.window - now
            logger.info("Rate limit reached for %s, retry in %.0fs", key, retry_after)
            return retry_after
        self._windows[key] = (started, count + 1)
        return None
