"""Quote provider schemas."""
from __future__ import annotations

from typing import Callable

from ..config import ConfigError, ProviderConfig
from ..interfaces.quote_provider import QuoteProvider
from .stooq import StooqProvider
from .yahoo import YahooProvider

# Registry of provider factories keyed by provider name.
PROVIDERS: dict[str, Callable[[ProviderConfig], QuoteProvider]] = {
    "yahoo": YahooProvider,
    "stooq": StooqProvider,
}


def build_provider(config: ProviderConfig) -> QuoteProvider:
    factory = PROVIDERS.get(config.name)
    if factory is None:
        raise ConfigError(f"Unknown quote provider '{config.name}'")
    return factory(config)


__all__ = ["PROVIDERS", "StooqProvider", "YahooProvider", "build_provider"]
