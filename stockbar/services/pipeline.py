"""Refresh pipeline — holdings → cached/fetched quotes → summary → text."""
from __future__ import annotations

import logging
from typing import Sequence

from ..config import AppConfig
from ..interfaces.quote_provider import QuoteProvider
from ..interfaces.quote_store import QuoteStore
from ..models import (
    FetchError,
    Fresh,
    Holding,
    PortfolioSummary,
    Resolution,
    Stale,
    Unavailable,
)
from ..providers import build_provider
from .portfolio import aggregate
from .quote_cache import QuoteCache
from .quote_client import QuoteClient, unique_symbols
from .renderer import render

logger = logging.getLogger(__name__)


class Pipeline:
    """Runs one end-to-end refresh for a list of holdings.

    The config and cache are built once per invocation and passed in;
    nothing here is module-level state.
    """

    def __init__(
        self,
        config: AppConfig,
        provider: QuoteProvider | None = None,
        cache: QuoteStore | None = None,
    ) -> None:
        self._config = config
        self._provider = provider or build_provider(config.provider)
        self._client = QuoteClient(self._provider, config.provider)
        self._cache = cache

    @property
    def cache(self) -> QuoteStore:
        # Built lazily so an empty portfolio never touches the cache file.
        if self._cache is None:
            self._cache = QuoteCache.from_config(self._config.cache)
        return self._cache

    async def resolve(self, symbols: Sequence[str]) -> dict[str, Resolution]:
        """Resolve each symbol from the cache or the provider, never raising."""
        cache = self.cache

        resolutions: dict[str, Resolution] = {}
        to_fetch: list[str] = []
        for symbol in unique_symbols(symbols):
            quote = cache.get_fresh(symbol)
            if quote is not None:
                resolutions[symbol] = Fresh(quote)
            else:
                to_fetch.append(symbol)

        if resolutions:
            logger.debug("Cache hits: %s", ", ".join(resolutions))
        if not to_fetch:
            return resolutions

        fetched = await self._client.fetch(to_fetch)

        # Single merge point: every fetch task has settled by now.
        for symbol in to_fetch:
            result = fetched[symbol]
            if isinstance(result, FetchError):
                entry = cache.get(symbol)
                if entry is not None:
                    logger.info(
                        "Using stale quote for %s from %s (%s)",
                        symbol,
                        entry.quote.fetched_at.isoformat(),
                        result,
                    )
                    resolutions[symbol] = Stale(entry.quote, result)
                else:
                    resolutions[symbol] = Unavailable(result)
            else:
                cache.put(symbol, result)
                resolutions[symbol] = Fresh(result)

        try:
            cache.save()
        except OSError as e:
            logger.warning("Could not write quote cache: %s", e)

        return resolutions

    async def refresh(self, holdings: Sequence[Holding]) -> PortfolioSummary:
        """Resolve quotes for ``holdings`` and aggregate them."""
        if not holdings:
            return aggregate((), {})
        resolutions = await self.resolve([h.symbol for h in holdings])
        return aggregate(holdings, resolutions)

    async def run(self, holdings: Sequence[Holding]) -> str:
        """Refresh and render the text block for the menu-bar host."""
        summary = await self.refresh(holdings)
        return render(summary, self._config.display)
