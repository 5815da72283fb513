"""Upstream token sources and their shared HTTP transport."""

from tokenprism.core.config import ProviderConfig
from tokenprism.core.data.providers.base import TokenSource
from tokenprism.core.data.providers.dexscreener import DexScreenerSource
from tokenprism.core.data.providers.geckoterminal import GeckoTerminalSource
from tokenprism.core.data.providers.http import HttpClient, HttpConfig, RateLimitConfig
from tokenprism.core.data.providers.jupiter import JupiterSource
from tokenprism.core.exceptions import ConfigurationError
from tokenprism.core.patterns import RetryConfig


def build_sources(config: ProviderConfig) -> list[TokenSource]:
    """Create the enabled sources, each with its own transport."""
    retry = RetryConfig(
        max_attempts=config.max_attempts,
        base_delay=config.base_delay,
        max_delay=config.max_delay,
    )

    def client(name: str, url: str, per_minute: int) -> HttpClient:
        return HttpClient(
            name,
            HttpConfig(base_url=url, timeout=config.timeout),
            RateLimitConfig(requests_per_minute=per_minute),
            retry,
        )

    factories = {
        "dexscreener": lambda: DexScreenerSource(
            client("dexscreener", config.dexscreener_url, config.dexscreener_rate_limit),
            trending_terms=list(config.trending_terms),
            native_price_usd=config.native_price_usd,
        ),
        "jupiter": lambda: JupiterSource(client("jupiter", config.jupiter_url, config.jupiter_rate_limit)),
        "geckoterminal": lambda: GeckoTerminalSource(
            client("geckoterminal", config.geckoterminal_url, config.geckoterminal_rate_limit)
        ),
    }

    sources = []
    for name in config.enabled:
        factory = factories.get(name.lower())
        if factory is None:
            raise ConfigurationError(f"Unknown token source: {name}", details={"available": sorted(factories)})
        sources.append(factory())
    return sources


__all__ = [
    "DexScreenerSource",
    "GeckoTerminalSource",
    "HttpClient",
    "HttpConfig",
    "JupiterSource",
    "RateLimitConfig",
    "TokenSource",
    "build_sources",
]
