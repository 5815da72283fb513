"""Resilience patterns module."""

from tokenprism.core.patterns.retry import ExponentialBackoffRetry, RetryConfig, RetryState

__all__ = ["ExponentialBackoffRetry", "RetryConfig", "RetryState"]
