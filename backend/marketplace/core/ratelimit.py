"""
marketplace/core/ratelimit.py - Fixed-window rate limiting for checkout.

Each client gets `limit` attempts per window; the window opens on the client's
first attempt and resets once `window_seconds` have passed. Counters live in
process memory and are lost on restart.
"""
import logging
import math
import threading
import time
from typing import Callable, Dict, Tuple

from marketplace.core.errors import RateLimitExceeded

logger = logging.getLogger("marketplace.ratelimit")

_PRUNE_THRESHOLD = 1024


class FixedWindowRateLimiter:
    def __init__(
        self,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1 or window_seconds <= 0:
            raise ValueError("limit and window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, Tuple[float, int]] = {}  # client -> (window_start, count)

    def hit(self, client_id: str) -> int:
        """
        Counts one attempt for `client_id` and returns how many are left.
        Raises RateLimitExceeded (with retry_after seconds) once the window is full.
        Bookkeeping failures deny the request.
        """
        try:
            now = self._clock()
            with self._lock:
                start, count = self._windows.get(client_id, (now, 0))
                if now - start >= self.window_seconds:
                    start, count = now, 0
                if count >= self.limit:
                    retry_after = max(1, math.ceil(start + self.window_seconds - now))
                    raise RateLimitExceeded(retry_after=retry_after)
                self._windows[client_id] = (start, count + 1)
                if len(self._windows) > _PRUNE_THRESHOLD:
                    self._prune(now)
                return self.limit - count - 1
        except RateLimitExceeded:
            raise
        except Exception:
            logger.exception("Rate limiter bookkeeping failed for %s; denying", client_id)
            raise RateLimitExceeded(retry_after=self.window_seconds)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _prune(self, now: float) -> None:
        expired = [k for k, (start, _) in self._windows.items() if now - start >= self.window_seconds]
        for k in expired:
            del self._windows[k]
