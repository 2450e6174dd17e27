"""Bounded retry for eventually-consistent sources.

Some sources only become queryable a short while after access is granted
(the health store right after a permission prompt, a provider right after
token refresh). Rather than looping until they answer, callers run the
attempt under a RetryPolicy that always ends with a definite outcome.

Usage:
    policy = RetryPolicy(max_attempts=5, delay=1.0)
    outcome = await policy.run(lambda: store.samples(MetricType.HRV, start, end))
    if not outcome.succeeded:
        logger.warning(f"HRV still unavailable: {outcome.error}")

Design Constraints:
- Never retry validation or programming errors
- DO retry: unavailable sources, rate limits, timeouts, connection errors
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Tuple, Type, TypeVar

from ..exceptions import ReadinessError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Exceptions that should be retried (transient failures)
RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    sqlite3.OperationalError,  # Database locked, disk I/O error, etc.
    ConnectionError,
    TimeoutError,
)

# Exceptions that should NOT be retried (permanent failures)
NON_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    ValueError,
    TypeError,
    KeyError,
    AttributeError,
)


def is_retryable(exception: Exception) -> bool:
    """Determine if an exception should be retried.

    Engine errors decide for themselves through ``retryable``; anything
    unknown is not retried.
    """
    if isinstance(exception, ReadinessError):
        return exception.retryable
    if isinstance(exception, NON_RETRYABLE_EXCEPTIONS):
        return False
    return isinstance(exception, RETRYABLE_EXCEPTIONS)


@dataclass
class RetryOutcome(Generic[T]):
    """Definite result of a retried operation."""

    succeeded: bool
    value: Optional[T] = None
    attempts: int = 0
    error: Optional[Exception] = None


@dataclass
class RetryPolicy:
    """Retry configuration.

    Attributes:
        max_attempts: Total attempts including the first (at least 1).
        delay: Seconds to wait before the second attempt.
        backoff: Multiplier applied to the delay after each failure;
            1.0 gives a fixed delay.
        max_delay: Upper bound on any single wait.
    """

    max_attempts: int = 5
    delay: float = 1.0
    backoff: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0 or self.backoff < 1.0:
            raise ValueError("delay must be >= 0 and backoff >= 1.0")

    def delay_for(self, attempt: int) -> float:
        """Wait after the given failed attempt (1-based)."""
        return min(self.delay * (self.backoff ** (attempt - 1)), self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> RetryOutcome[T]:
        """Run ``operation`` until it succeeds, fails permanently, or attempts run out."""
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                value = await operation()
            except Exception as e:
                last_error = e
                if not is_retryable(e):
                    logger.warning(f"Non-retryable failure on attempt {attempt}: {type(e).__name__}: {e}")
                    return RetryOutcome(succeeded=False, attempts=attempt, error=e)
                if attempt < self.max_attempts:
                    wait = self.delay_for(attempt)
                    logger.debug(
                        f"Attempt {attempt}/{self.max_attempts} failed: {e}. Retrying in {wait:.2f}s"
                    )
                    await sleep(wait)
                continue

            if attempt > 1:
                logger.info(f"Succeeded after {attempt} attempts")
            return RetryOutcome(succeeded=True, value=value, attempts=attempt)

        logger.warning(f"Giving up after {self.max_attempts} attempts: {last_error}")
        return RetryOutcome(succeeded=False, attempts=self.max_attempts, error=last_error)

    async def wait_until(
        self,
        condition: Callable[[], Awaitable[bool]],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> RetryOutcome[bool]:
        """Poll ``condition`` until it is true or attempts run out."""
        for attempt in range(1, self.max_attempts + 1):
            if await condition():
                return RetryOutcome(succeeded=True, value=True, attempts=attempt)
            if attempt < self.max_attempts:
                await sleep(self.delay_for(attempt))
        return RetryOutcome(succeeded=False, value=False, attempts=self.max_attempts)
