"""Quote client — batched, concurrent quote fetching with per-symbol failures."""
from __future__ import annotations

import asyncio
import logging
import ssl
from datetime import datetime, timezone
from typing import Iterable, Sequence

import aiohttp
import certifi

from ..config import ProviderConfig
from ..interfaces.quote_provider import QuoteProvider
from ..models import FetchError, FetchErrorKind, FetchResult

logger = logging.getLogger(__name__)


def unique_symbols(symbols: Iterable[str]) -> list[str]:
    """Upper-case and deduplicate symbols, keeping first-seen order."""
    seen: dict[str, None] = {}
    for symbol in symbols:
        symbol = symbol.strip().upper()
        if symbol:
            seen.setdefault(symbol, None)
    return list(seen)


def chunked(symbols: Sequence[str], size: int) -> list[list[str]]:
    if size <= 0:
        return [list(symbols)]
    return [list(symbols[i : i + size]) for i in range(0, len(symbols), size)]


class QuoteClient:
    """Fetch quotes through a provider schema over one aiohttp session.

    Every symbol passed to :meth:`fetch` gets exactly one result: a
    :class:`~stockbar.models.Quote` or a :class:`~stockbar.models.FetchError`.
    Nothing raises past this boundary except programming errors.
    """

    def __init__(self, provider: QuoteProvider, config: ProviderConfig) -> None:
        self.provider = provider
        self.timeout = config.timeout_seconds
        self.max_concurrency = config.max_concurrency
        self.user_agent = config.user_agent

    async def fetch(self, symbols: Iterable[str]) -> dict[str, FetchResult]:
        """Fetch quotes for ``symbols``, splitting into provider-sized batches.

        Raises:
            ValueError: no symbols were given.
        """
        wanted = unique_symbols(symbols)
        if not wanted:
            raise ValueError("fetch() needs at least one symbol")

        batches = chunked(wanted, self.provider.batch_size)
        logger.debug(
            "Fetching %d symbol(s) from %s in %d batch(es)",
            len(wanted),
            self.provider.name,
            len(batches),
        )

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context, limit=self.max_concurrency)

        async with aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers={"User-Agent": self.user_agent},
        ) as session:
            batch_results = await asyncio.gather(
                *(self._fetch_batch(session, batch) for batch in batches)
            )

        results: dict[str, FetchResult] = {}
        for batch_result in batch_results:
            results.update(batch_result)

        failed = sorted(s for s, r in results.items() if isinstance(r, FetchError))
        if failed:
            logger.warning("No fresh quote for: %s", ", ".join(failed))
        return results

    async def _fetch_batch(
        self, session: aiohttp.ClientSession, symbols: list[str]
    ) -> dict[str, FetchResult]:
        """Fetch one batch, retrying once on a transient request failure."""
        outcome = await self._request(session, symbols)
        if isinstance(outcome, FetchError) and outcome.transient:
            logger.info(
                "Retrying %s batch (%s) after %s",
                self.provider.name,
                ", ".join(symbols),
                outcome,
            )
            outcome = await self._request(session, symbols)

        if isinstance(outcome, FetchError):
            logger.error(
                "Quote request to %s failed for %s: %s",
                self.provider.name,
                ", ".join(symbols),
                outcome,
            )
            return {symbol: outcome for symbol in symbols}

        # A symbol the provider parser did not answer for counts as a parse failure.
        return {
            symbol: outcome.get(
                symbol,
                FetchError(FetchErrorKind.PARSE_FAILURE, "no result for symbol"),
            )
            for symbol in symbols
        }

    async def _request(
        self, session: aiohttp.ClientSession, symbols: list[str]
    ) -> dict[str, FetchResult] | FetchError:
        """Issue one HTTP request; request-level failures come back as a FetchError."""
        url, params = self.provider.build_request(symbols)

        try:
            async with session.get(url, params=params or None) as response:
                status = response.status
                if 400 <= status < 500:
                    return FetchError(FetchErrorKind.INVALID_SYMBOL, f"HTTP {status}")
                if not 200 <= status < 300:
                    return FetchError(FetchErrorKind.NETWORK_FAILURE, f"HTTP {status}")
                body = await response.text()
        except asyncio.TimeoutError:
            return FetchError(
                FetchErrorKind.TIMEOUT, f"no response within {self.timeout:g}s"
            )
        except UnicodeDecodeError as e:
            return FetchError(FetchErrorKind.PARSE_FAILURE, f"undecodable body: {e}")
        except (aiohttp.ClientError, OSError) as e:
            return FetchError(FetchErrorKind.NETWORK_FAILURE, str(e) or type(e).__name__)

        fetched_at = datetime.now(timezone.utc)
        try:
            return self.provider.parse(body, symbols, fetched_at)
        except Exception as e:
            return FetchError(FetchErrorKind.PARSE_FAILURE, f"unparsable response: {e}")
