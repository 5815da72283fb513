"""Configuration management module."""

from tokenprism.core.config.settings import (
    CacheConfig,
    ConfigManager,
    JobsConfig,
    LoggingConfig,
    ProviderConfig,
    ServerConfig,
    TokenPrismConfig,
    WebSocketConfig,
    get_default_config,
    load_config_from_env,
)

__all__ = [
    "ConfigManager",
    "TokenPrismConfig",
    "CacheConfig",
    "ProviderConfig",
    "WebSocketConfig",
    "JobsConfig",
    "ServerConfig",
    "LoggingConfig",
    "get_default_config",
    "load_config_from_env",
]
