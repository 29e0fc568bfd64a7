"""Retry strategies for step invocations.

Whether an error is worth retrying is decided by the error itself
(:func:`skillweave.core.errors.is_retryable`); the strategy only bounds how
many times and how long to wait between attempts.

Example:
    >>> strategy = ExponentialBackoff(max_retries=3, base_delay=0.5, jitter=False)
    >>> [strategy.next_delay(a) for a in range(3)]
    [0.5, 1.0, 2.0]
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace

from skillweave.core.errors import InvocationTimeoutError, is_retryable


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    max_retries: int

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Delay in seconds before retry number ``attempt`` (0 = first retry)."""
        ...

    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        """True when ``attempt`` retries have been used and another is allowed."""
        if attempt >= self.max_retries:
            return False
        if error is not None:
            return is_retryable(error)
        return True

    def with_max_retries(self, max_retries: int) -> RetryStrategy:
        return replace(self, max_retries=max_retries)  # type: ignore[type-var]


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** attempt), max_delay) ± jitter

    Attributes:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier
        jitter: Add randomness to prevent thundering herd
        jitter_range: Range of jitter as fraction of delay (0.0-1.0)
        retry_timeouts: Treat invocation timeouts as retryable
    """

    max_retries: int = 2
    base_delay: float = 0.5
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25
    retry_timeouts: bool = True

    def next_delay(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.multiplier**attempt), self.max_delay)
        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay = max(0.0, delay + random.uniform(-jitter_amount, jitter_amount))
        return delay

    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        if isinstance(error, InvocationTimeoutError) and not self.retry_timeouts:
            return False
        return super().should_retry(attempt, error)


@dataclass
class ConstantBackoff(RetryStrategy):
    """Constant delay between retries."""

    max_retries: int = 2
    delay: float = 0.0

    def next_delay(self, attempt: int) -> float:
        return self.delay


@dataclass
class NoRetry(RetryStrategy):
    """No retry - fail immediately."""

    max_retries: int = 0

    def next_delay(self, attempt: int) -> float:
        return 0.0

    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        return False


def backoff_from_settings(settings) -> ExponentialBackoff:
    """Build the default strategy from :class:`~skillweave.core.settings.WeaveSettings`."""
    return ExponentialBackoff(
        max_retries=settings.max_retries,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
        retry_timeouts=settings.retry_timeouts,
    )


__all__ = [
    "RetryStrategy",
    "ExponentialBackoff",
    "ConstantBackoff",
    "NoRetry",
    "backoff_from_settings",
]
