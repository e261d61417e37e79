import threading
import time
from typing import Callable, Dict, Tuple

from storefront.core.errors import RateLimited


class RateLimiter:
    """Fixed-window request counter, one window per key.

    Lives on ``app.state`` so each application (and each test) owns its counters.
    """

    def __init__(self, limit: int, window_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str):
        if self.limit <= 0:
            return
        now = self._clock()
        with self._lock:
            started, count = self._hits.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            count += 1
            self._hits[key] = (started, count)
        if count > self.limit:
            raise RateLimited()
