"""tokenprism core exception classes."""

from typing import Any

from tokenprism.core.exceptions.codes import ErrorCode


class TokenPrismError(Exception):
    """Base exception for tokenprism."""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.GENERAL_ERROR.value,
        details: dict[str, Any] | None = None,
    ):
        """Initialise the exception.

        Args:
            message: human readable message
            error_code: stable error code
            details: extra structured details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ProviderError(TokenPrismError):
    """An upstream token source failed."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        error_code: str = ErrorCode.PROVIDER_ERROR.value,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)
        self.provider_name = provider_name


class RateLimitError(ProviderError):
    """Upstream rejected the request with a rate limit response."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        retry_after: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if retry_after is not None:
            super_details["retry_after"] = retry_after
        super().__init__(message, provider_name, ErrorCode.RATE_LIMIT_ERROR.value, super_details)
        self.retry_after = retry_after


class NetworkError(ProviderError):
    """Transport level failure: timeout, connection error or 5xx response."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if status_code is not None:
            super_details["status_code"] = status_code
        super().__init__(message, provider_name, ErrorCode.NETWORK_ERROR.value, super_details)
        self.status_code = status_code


class DataValidationError(TokenPrismError):
    """Client supplied input that cannot be served."""

    def __init__(
        self,
        message: str,
        validation_errors: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if validation_errors:
            super_details["validation_errors"] = validation_errors
        super().__init__(message, ErrorCode.VALIDATION_ERROR.value, super_details)
        self.validation_errors = validation_errors or {}


class CacheError(TokenPrismError):
    """Cache backend failure."""

    def __init__(
        self,
        message: str,
        cache_type: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if cache_type:
            super_details["cache_type"] = cache_type
        super().__init__(message, ErrorCode.CACHE_ERROR.value, super_details)


class ConfigurationError(TokenPrismError):
    """Invalid configuration file or environment value."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR.value, details)
