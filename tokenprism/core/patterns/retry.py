"""Exponential backoff retry for async callables."""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from loguru import logger

from tokenprism.core.exceptions import NetworkError, RateLimitError

T = TypeVar("T")


class RetryState(Enum):
    """Retry lifecycle state."""

    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RetryConfig:
    """Retry configuration."""

    max_attempts: int = 5
    base_delay: float = 1.0  # seconds
    max_delay: float = 16.0  # seconds
    exponential_base: float = 2.0
    jitter: bool = True
    retry_on_exceptions: list[type] = field(default_factory=lambda: [NetworkError, RateLimitError])
    skip_on_exceptions: list[type] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")


class ExponentialBackoffRetry:
    """Exponential backoff retry executor."""

    def __init__(self, config: RetryConfig | None = None, *, sleep: Callable[[float], Awaitable[Any]] | None = None):
        self.config = config or RetryConfig()
        self.attempt_count = 0
        self.total_delay = 0.0
        self.state = RetryState.READY
        self.last_exception: Exception | None = None
        self._sleep = sleep or asyncio.sleep

    async def execute(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``func`` with retries.

        Args:
            func: coroutine function to call
            *args: positional arguments for ``func``
            **kwargs: keyword arguments for ``func``

        Returns:
            The first successful result.

        Raises:
            Exception: the last exception once attempts are exhausted or a
                non-retryable exception is raised.
        """
        self.state = RetryState.RUNNING
        self.attempt_count = 0
        self.total_delay = 0.0

        while True:
            try:
                self.attempt_count += 1
                result = await func(*args, **kwargs)
                self.state = RetryState.COMPLETED
                return result

            except Exception as e:
                self.last_exception = e

                if any(isinstance(e, exc_type) for exc_type in self.config.skip_on_exceptions):
                    self.state = RetryState.FAILED
                    raise

                should_retry = any(isinstance(e, exc_type) for exc_type in self.config.retry_on_exceptions)
                if not should_retry or self.attempt_count >= self.config.max_attempts:
                    self.state = RetryState.FAILED
                    raise

                delay = self._calculate_delay(self.attempt_count - 1)
                logger.warning(
                    "Retrying after error",
                    attempt=self.attempt_count,
                    next_attempt=self.attempt_count + 1,
                    delay=round(delay, 3),
                    error=str(e),
                )
                await self._sleep(delay)
                self.total_delay += delay

    def _calculate_delay(self, attempt_number: int) -> float:
        """Delay before retry number ``attempt_number`` (0 based)."""
        if attempt_number < 0:
            return 0.0

        delay = min(self.config.base_delay * (self.config.exponential_base**attempt_number), self.config.max_delay)

        if self.config.jitter:
            # +/- 20%
            delay *= random.uniform(0.8, 1.2)

        return min(delay, self.config.max_delay)

    def get_stats(self) -> dict[str, Any]:
        """Return retry statistics."""
        return {
            "attempts": self.attempt_count,
            "max_attempts": self.config.max_attempts,
            "total_delay": self.total_delay,
            "state": self.state.value,
            "last_exception": str(self.last_exception) if self.last_exception else None,
        }

    def reset(self) -> None:
        """Reset retry state."""
        self.attempt_count = 0
        self.total_delay = 0.0
        self.state = RetryState.READY
        self.last_exception = None
