"""Tests for retry strategies.

The strategy bounds attempts and delays; whether an error is retryable is
decided by the error itself.
"""

from __future__ import annotations

import pytest

from skillweave.core.errors import (
    FatalHandlerError,
    HandlerExecutionError,
    InvocationTimeoutError,
    TransientError,
)
from skillweave.core.settings import WeaveSettings
from skillweave.execution.retry import (
    ConstantBackoff,
    ExponentialBackoff,
    NoRetry,
    backoff_from_settings,
)


class TestExponentialBackoff:
    def test_delays_without_jitter(self):
        strategy = ExponentialBackoff(max_retries=4, base_delay=0.5, jitter=False)
        assert [strategy.next_delay(a) for a in range(4)] == [0.5, 1.0, 2.0, 4.0]

    def test_delay_is_capped(self):
        strategy = ExponentialBackoff(base_delay=10, max_delay=15, jitter=False)
        assert strategy.next_delay(5) == 15

    def test_jitter_stays_in_range(self):
        strategy = ExponentialBackoff(base_delay=1.0, jitter=True, jitter_range=0.25)
        for _ in range(50):
            assert 0.75 <= strategy.next_delay(0) <= 1.25

    def test_bounded_by_max_retries(self):
        strategy = ExponentialBackoff(max_retries=2)
        error = TransientError("flaky")
        assert strategy.should_retry(0, error)
        assert strategy.should_retry(1, error)
        assert not strategy.should_retry(2, error)

    def test_fatal_errors_are_not_retried(self):
        strategy = ExponentialBackoff(max_retries=5)
        assert not strategy.should_retry(0, FatalHandlerError("no"))
        assert not strategy.should_retry(0, RuntimeError("unclassified"))

    def test_wrapped_retryable_error(self):
        error = HandlerExecutionError("failed", handler_id="h", retryable=True)
        assert ExponentialBackoff().should_retry(0, error)

    def test_timeouts_can_be_excluded(self):
        error = InvocationTimeoutError("h", 1.0)
        assert ExponentialBackoff().should_retry(0, error)
        assert not ExponentialBackoff(retry_timeouts=False).should_retry(0, error)

    def test_with_max_retries_copies(self):
        strategy = ExponentialBackoff(max_retries=2, base_delay=0.1)
        adjusted = strategy.with_max_retries(0)
        assert adjusted.max_retries == 0
        assert adjusted.base_delay == 0.1
        assert strategy.max_retries == 2


class TestOtherStrategies:
    def test_constant(self):
        strategy = ConstantBackoff(max_retries=3, delay=2.0)
        assert strategy.next_delay(0) == strategy.next_delay(2) == 2.0
        assert strategy.should_retry(2, TransientError("x"))
        assert not strategy.should_retry(3, TransientError("x"))

    def test_no_retry(self):
        assert not NoRetry().should_retry(0, TransientError("x"))


def test_backoff_from_settings():
    settings = WeaveSettings(
        max_retries=4, retry_base_delay=0.2, retry_max_delay=3.0, retry_timeouts=False
    )
    strategy = backoff_from_settings(settings)
    assert strategy.max_retries == 4
    assert strategy.base_delay == 0.2
    assert strategy.max_delay == 3.0
    assert strategy.retry_timeouts is False


@pytest.mark.parametrize("attempt", [0, 1])
def test_should_retry_without_error(attempt):
    assert ConstantBackoff(max_retries=2).should_retry(attempt)
