"""Structured logging."""

from tokenprism.core.logging.logger import TOP_LEVEL_FIELDS, configure_logging, log_context, logger

__all__ = ["TOP_LEVEL_FIELDS", "configure_logging", "log_context", "logger"]
