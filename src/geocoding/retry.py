import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from src.geocoding.exceptions import TransientUpstreamFailure

logger = logging.getLogger(__name__)


@dataclass
class RetryResult:
    value: Any = None
    attempts: int = 0
    last_error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.last_error is None and self.attempts > 0


class RetryPolicy:
    """
    Runs an operation up to ``max_retries + 1`` times.

    Only TransientUpstreamFailure is retried; the delay before retry n is
    ``base_delay * 2 ** (n - 1)`` (1s, 2s, 4s with the defaults). Exhaustion is
    reported through the returned RetryResult instead of an exception.
    """

    def __init__(self, max_retries=3, base_delay=1.0, sleep=time.sleep):
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    def delay_for(self, retry_number: int) -> float:
        return self.base_delay * (2 ** (retry_number - 1))

    def execute(self, operation: Callable[[], Any], description="operation") -> RetryResult:
        result = RetryResult()
        total_attempts = self.max_retries + 1

        for attempt in range(1, total_attempts + 1):
            result.attempts = attempt
            try:
                result.value = operation()
                result.last_error = None
                return result
            except TransientUpstreamFailure as e:
                result.last_error = e
                if attempt == total_attempts:
                    break
                wait_time = self.delay_for(attempt)
                logger.warning(f"{description} failed: {e}. Retrying in {wait_time}s... (Attempt {attempt}/{total_attempts})")
                self._sleep(wait_time)

        logger.error(f"{description} failed after {total_attempts} attempts: {result.last_error}")
        return result
