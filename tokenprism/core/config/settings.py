"""Configuration management for tokenprism services."""

import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from tokenprism.core.exceptions import ConfigurationError


@dataclass
class CacheConfig:
    """Cache configuration."""

    backend: str = "memory"
    memory_size: int = 1000
    disk_path: str = str(Path.home() / ".tokenprism" / "cache.duckdb")
    ttl_default: int = 30
    ttl_token_list: int = 30
    ttl_token_detail: int = 60
    ttl_search: int = 15


@dataclass
class ProviderConfig:
    """Upstream token source configuration."""

    enabled: list[str] = field(default_factory=lambda: ["dexscreener", "jupiter", "geckoterminal"])
    timeout: float = 10.0
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 16.0
    dexscreener_url: str = "https://api.dexscreener.com/latest/dex"
    jupiter_url: str = "https://lite-api.jup.ag"
    geckoterminal_url: str = "https://api.geckoterminal.com/api/v2"
    dexscreener_rate_limit: int = 300
    jupiter_rate_limit: int = 60
    geckoterminal_rate_limit: int = 30
    trending_terms: list[str] = field(default_factory=lambda: ["sol", "bonk", "wif"])
    native_price_usd: float = 100.0
    source_priority: dict[str, int] = field(
        default_factory=lambda: {"dexscreener": 3, "jupiter": 2, "geckoterminal": 1}
    )


@dataclass
class WebSocketConfig:
    """Change detection and broadcast configuration."""

    price_change_threshold: float = 5.0
    volume_spike_threshold: float = 50.0
    broadcast_limit: int = 50
    min_quality_score: int = 50


@dataclass
class JobsConfig:
    """Background job configuration."""

    refresh_interval: float = 30.0
    stop_timeout: float = 5.0


@dataclass
class ServerConfig:
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 3000
    reload: bool = False
    api_rate_limit: int = 100


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str | None = None


@dataclass
class TokenPrismConfig:
    """Top level tokenprism configuration."""

    cache: CacheConfig = field(default_factory=CacheConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    websocket: WebSocketConfig = field(default_factory=WebSocketConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "TokenPrismConfig":
        """Build a configuration from a (possibly partial) mapping."""
        try:
            return cls(
                cache=CacheConfig(**config_dict.get("cache", {})),
                providers=ProviderConfig(**config_dict.get("providers", {})),
                websocket=WebSocketConfig(**config_dict.get("websocket", {})),
                jobs=JobsConfig(**config_dict.get("jobs", {})),
                server=ServerConfig(**config_dict.get("server", {})),
                logging=LoggingConfig(**config_dict.get("logging", {})),
            )
        except TypeError as exc:
            raise ConfigurationError(f"Unknown configuration key: {exc}") from exc

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary."""
        return asdict(self)


class ConfigManager:
    """Loads configuration from a TOML file merged with environment overrides."""

    def __init__(self, config_path: Path | None = None, *, use_env: bool = True):
        """Initialise the manager.

        Args:
            config_path: TOML file path, defaults to ``$TOKENPRISM_CONFIG_FILE`` or
                ``~/.tokenprism/config.toml``
            use_env: apply ``TOKENPRISM_*`` overrides on top of the file
        """
        env_path = os.getenv("TOKENPRISM_CONFIG_FILE")
        self.config_path = config_path or (Path(env_path) if env_path else Path.home() / ".tokenprism" / "config.toml")
        self.use_env = use_env
        self.config = self._load_config()

    def _load_config(self) -> TokenPrismConfig:
        config_dict: dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    config_dict = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                # fall back to defaults rather than refusing to start
                logger.warning("Failed to load config file", path=str(self.config_path), error=str(e))
                config_dict = {}

        if self.use_env:
            _deep_update(config_dict, load_config_from_env())
        return TokenPrismConfig.from_dict(config_dict)

    def get_config(self) -> TokenPrismConfig:
        """Return the active configuration."""
        return self.config

    def update_config(self, **updates: Any) -> None:
        """Apply nested updates, e.g. ``update_config(jobs={"refresh_interval": 5})``."""
        config_dict = self.config.to_dict()
        _deep_update(config_dict, updates)
        self.config = TokenPrismConfig.from_dict(config_dict)


def _deep_update(d: dict[str, Any], u: dict[str, Any]) -> dict[str, Any]:
    for k, v in u.items():
        if isinstance(v, dict) and isinstance(d.get(k), dict):
            _deep_update(d[k], v)
        else:
            d[k] = v
    return d


def get_default_config() -> TokenPrismConfig:
    """Return a configuration populated with defaults only."""
    return TokenPrismConfig()


_ENV_SPEC: dict[str, tuple[str, str, type]] = {
    "TOKENPRISM_CACHE_BACKEND": ("cache", "backend", str),
    "TOKENPRISM_CACHE_DISK_PATH": ("cache", "disk_path", str),
    "TOKENPRISM_CACHE_TTL_TOKEN_LIST": ("cache", "ttl_token_list", int),
    "TOKENPRISM_CACHE_TTL_TOKEN_DETAIL": ("cache", "ttl_token_detail", int),
    "TOKENPRISM_PROVIDER_TIMEOUT": ("providers", "timeout", float),
    "TOKENPRISM_DEXSCREENER_BASE_URL": ("providers", "dexscreener_url", str),
    "TOKENPRISM_JUPITER_BASE_URL": ("providers", "jupiter_url", str),
    "TOKENPRISM_GECKOTERMINAL_BASE_URL": ("providers", "geckoterminal_url", str),
    "TOKENPRISM_DEXSCREENER_RATE_LIMIT": ("providers", "dexscreener_rate_limit", int),
    "TOKENPRISM_JUPITER_RATE_LIMIT": ("providers", "jupiter_rate_limit", int),
    "TOKENPRISM_GECKOTERMINAL_RATE_LIMIT": ("providers", "geckoterminal_rate_limit", int),
    "TOKENPRISM_WS_PRICE_CHANGE_THRESHOLD": ("websocket", "price_change_threshold", float),
    "TOKENPRISM_WS_VOLUME_SPIKE_THRESHOLD": ("websocket", "volume_spike_threshold", float),
    "TOKENPRISM_REFRESH_INTERVAL": ("jobs", "refresh_interval", float),
    "TOKENPRISM_HOST": ("server", "host", str),
    "TOKENPRISM_PORT": ("server", "port", int),
    "TOKENPRISM_API_RATE_LIMIT": ("server", "api_rate_limit", int),
    "TOKENPRISM_LOGGING_LEVEL": ("logging", "level", str),
    "TOKENPRISM_LOGGING_FILE": ("logging", "file", str),
}


def load_config_from_env() -> dict[str, Any]:
    """Load configuration overrides from ``TOKENPRISM_*`` environment variables."""
    config: dict[str, Any] = {}

    for env_name, (section, key, caster) in _ENV_SPEC.items():
        raw = os.getenv(env_name)
        if raw is None:
            continue
        try:
            value = caster(raw)
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid value for {env_name}: {raw!r}", details={"variable": env_name}
            ) from exc
        config.setdefault(section, {})[key] = value

    enabled = os.getenv("TOKENPRISM_PROVIDERS_ENABLED")
    if enabled is not None:
        names = [name.strip().lower() for name in enabled.split(",") if name.strip()]
        config.setdefault("providers", {})["enabled"] = names

    reload_flag = os.getenv("TOKENPRISM_RELOAD")
    if reload_flag is not None:
        config.setdefault("server", {})["reload"] = reload_flag.lower() == "true"

    return config
