import time
import logging
from threading import Lock

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Minimum spacing between upstream requests, shared by every resolver in the process.

    The lock is held while waiting so concurrent callers are granted slots one at a
    time in arrival order. The grant time is recorded before the lock is released,
    so a request sent after await_slot() always counts against the next caller.
    """

    def __init__(self, min_interval=1.1, clock=time.monotonic, sleep=time.sleep):
        if min_interval < 0:
            raise ValueError("min_interval must be non-negative")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = Lock()
        self._last_granted = None

    def await_slot(self):
        with self._lock:
            if self._last_granted is not None:
                wait_time = self._last_granted + self.min_interval - self._clock()
                if wait_time > 0:
                    logger.debug(f"Rate limit: waiting {wait_time:.2f}s for the next upstream slot")
                    self._sleep(wait_time)
            self._last_granted = self._clock()
            return self._last_granted
