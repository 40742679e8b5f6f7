"""
Retry strategies for chain reads and transaction submission.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .errors import RecoverableError, UnrecoverableError, classify_error

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    initial_delay_seconds: float = 0.5
    max_delay_seconds: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1

    def get_delay(self, attempt: int) -> float:
        """Delay before the retry that follows ``attempt`` (zero-based)."""
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** attempt),
            self.max_delay_seconds,
        )
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
        return max(delay, 0)


class RetryStrategy:
    """
    Retries recoverable errors up to ``max_attempts`` times.

    Unrecoverable errors and cancellation propagate immediately. Errors that
    are not part of the taxonomy are classified from their message.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or RetryConfig()
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "operation",
    ) -> T:
        last_error: Optional[Exception] = None

        for attempt in range(self.config.max_attempts):
            try:
                return await operation()
            except Exception as e:
                last_error = e

                if not self.should_retry(e, attempt):
                    raise

                delay = self._get_delay(e, attempt)
                self.logger.warning(
                    f"{description}: attempt {attempt + 1}/{self.config.max_attempts} failed: {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        raise last_error or RuntimeError("All retry attempts exhausted")

    def should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.config.max_attempts - 1:
            return False

        if isinstance(error, UnrecoverableError):
            return False

        if isinstance(error, RecoverableError):
            return error.retryable

        return classify_error(error).recoverable

    def _get_delay(self, error: Exception, attempt: int) -> float:
        if isinstance(error, RecoverableError) and error.retry_after:
            return min(error.retry_after, self.config.max_delay_seconds)
        return self.config.get_delay(attempt)

