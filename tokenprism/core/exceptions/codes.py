"""Error codes shared across the exception hierarchy."""

from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes exposed in API error payloads and CLI output."""

    GENERAL_ERROR = "GENERAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    CACHE_ERROR = "CACHE_ERROR"
    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"
