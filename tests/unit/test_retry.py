"""
Unit tests for backoff policy and retry classification
"""

import httpx

from core.exceptions import (
    ApiError,
    DataFormatError,
    NetworkError,
    RateLimitError,
    ServerError,
)
from ingestion.retry import BackoffPolicy, RetryState, is_retryable


class TestBackoffPolicy:

    def test_reference_delays(self):
        policy = BackoffPolicy(max_attempts=5, base_delay=3, step_delay=2)

        assert [policy.delay(attempt) for attempt in range(5)] == [5, 7, 11, 19, 35]

    def test_delays_strictly_increase(self):
        policy = BackoffPolicy(base_delay=0.5, step_delay=0.25)
        delays = [policy.delay(attempt) for attempt in range(10)]

        assert all(later > earlier for earlier, later in zip(delays, delays[1:]))

    def test_defaults_come_from_settings(self):
        policy = BackoffPolicy()

        assert policy.max_attempts == 5
        assert policy.delay(0) == 5


class TestRetryState:

    def test_exhausted_after_max_attempts(self):
        state = RetryState(BackoffPolicy(max_attempts=2, base_delay=3, step_delay=2))

        assert state.next_delay == 5
        state.record_failure(RateLimitError("", status_code=429))
        assert not state.exhausted
        assert state.next_delay == 7
        state.record_failure(RateLimitError("", status_code=429))
        assert state.exhausted
        assert isinstance(state.last_error, RateLimitError)


class TestRetryClassification:

    def test_rate_limit_is_retryable(self):
        assert is_retryable(RateLimitError("", status_code=429))
        assert is_retryable(ApiError("", status_code=429))

    def test_server_error_is_retryable(self):
        assert is_retryable(ServerError("", status_code=500))

    def test_other_server_statuses_are_not_retried(self):
        assert not is_retryable(ServerError("", status_code=503))

    def test_network_error_is_retryable(self):
        assert is_retryable(NetworkError("reset", original_exception=httpx.ReadTimeout("timeout")))

    def test_client_errors_are_not_retryable(self):
        for status in (401, 403, 404):
            assert not is_retryable(ApiError("", status_code=status))

    def test_unrelated_errors_are_not_retryable(self):
        assert not is_retryable(DataFormatError("bad json"))
        assert not is_retryable(ValueError("boom"))
