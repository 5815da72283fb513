"""Shared CLI constants."""

VALIDATION_EXIT_CODE = 2
PROVIDER_EXIT_CODE = 3
SYSTEM_EXIT_CODE = 3
