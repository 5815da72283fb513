"""Exception handling module."""

from tokenprism.core.exceptions.base import (
    CacheError,
    ConfigurationError,
    DataValidationError,
    NetworkError,
    ProviderError,
    RateLimitError,
    TokenPrismError,
)
from tokenprism.core.exceptions.codes import ErrorCode

__all__ = [
    "TokenPrismError",
    "ProviderError",
    "RateLimitError",
    "NetworkError",
    "DataValidationError",
    "CacheError",
    "ConfigurationError",
    "ErrorCode",
]
