"""Tests for the exponential backoff executor."""

import pytest

from tokenprism.core.exceptions import NetworkError, ProviderError, RateLimitError
from tokenprism.core.patterns import ExponentialBackoffRetry, RetryConfig
from tokenprism.core.patterns.retry import RetryState


class TestRetryConfig:
    def test_default_config(self):
        config = RetryConfig()

        assert config.max_attempts == 5
        assert config.base_delay == 1.0
        assert config.max_delay == 16.0
        assert NetworkError in config.retry_on_exceptions
        assert RateLimitError in config.retry_on_exceptions

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)


class TestExponentialBackoffRetry:
    def test_delays_double_up_to_cap(self):
        retry = ExponentialBackoffRetry(RetryConfig(jitter=False))

        assert [retry._calculate_delay(n) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 16.0, 16.0]

    def test_jitter_stays_within_twenty_percent(self):
        retry = ExponentialBackoffRetry(RetryConfig(base_delay=1.0, jitter=True))

        for _ in range(50):
            assert 1.6 <= retry._calculate_delay(1) <= 2.4

    @pytest.mark.asyncio
    async def test_retries_retryable_errors(self):
        sleeps = []

        async def fake_sleep(delay):
            sleeps.append(delay)

        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise NetworkError("boom", "dexscreener")
            return "ok"

        retry = ExponentialBackoffRetry(RetryConfig(jitter=False), sleep=fake_sleep)

        assert await retry.execute(flaky) == "ok"
        assert retry.attempt_count == 3
        assert sleeps == [1.0, 2.0]
        assert retry.state == RetryState.COMPLETED
        assert retry.get_stats()["total_delay"] == 3.0

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        async def fake_sleep(delay):
            return None

        async def always_fails():
            raise RateLimitError("slow down", "jupiter")

        retry = ExponentialBackoffRetry(RetryConfig(max_attempts=3, jitter=False), sleep=fake_sleep)

        with pytest.raises(RateLimitError):
            await retry.execute(always_fails)
        assert retry.attempt_count == 3
        assert retry.state == RetryState.FAILED

    @pytest.mark.asyncio
    async def test_non_retryable_errors_propagate_immediately(self):
        async def bad_request():
            raise ProviderError("HTTP 404", "geckoterminal")

        retry = ExponentialBackoffRetry(RetryConfig())

        with pytest.raises(ProviderError):
            await retry.execute(bad_request)
        assert retry.attempt_count == 1

    @pytest.mark.asyncio
    async def test_skip_list_wins_over_retry_list(self):
        async def fails():
            raise NetworkError("down", "jupiter")

        retry = ExponentialBackoffRetry(RetryConfig(skip_on_exceptions=[NetworkError]))

        with pytest.raises(NetworkError):
            await retry.execute(fails)
        assert retry.attempt_count == 1

        retry.reset()
        assert retry.state == RetryState.READY
        assert retry.last_exception is None
