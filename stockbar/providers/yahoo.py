"""Yahoo Finance quote API — request building and pure response parsing."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from ..config import ProviderConfig
from ..models import FetchError, FetchErrorKind, FetchResult, Quote

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://query1.finance.yahoo.com/v7/finance/quote"
DEFAULT_BATCH_SIZE = 50


def _price(row: dict[str, Any], key: str) -> Decimal:
    value = row[key]
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"{key} is not numeric: {value!r}")
    number = Decimal(str(value))
    if not number.is_finite() or number < 0:
        raise ValueError(f"{key} out of range: {value!r}")
    return number


def parse_quote_row(row: dict[str, Any], fetched_at: datetime) -> Quote:
    """Parse one ``quoteResponse.result`` entry.

    Raises:
        KeyError, ValueError, InvalidOperation: the row is malformed.
    """
    return Quote(
        symbol=str(row["symbol"]).upper(),
        price=_price(row, "regularMarketPrice"),
        previous_close=_price(row, "regularMarketPreviousClose"),
        fetched_at=fetched_at,
        currency=str(row.get("currency") or "USD"),
    )


def parse_quote_response(
    body: str, symbols: Sequence[str], fetched_at: datetime
) -> dict[str, FetchResult]:
    """Parse a v7 quote payload into a result for every requested symbol.

    Symbols absent from the payload are INVALID_SYMBOL; rows that do not
    match the schema are PARSE_FAILURE for that symbol only. A payload that
    is not JSON, lacks ``quoteResponse`` or reports a response-level error
    fails every symbol with PARSE_FAILURE.
    """
    try:
        data = json.loads(body)
        response = data["quoteResponse"]
        if response.get("error"):
            raise ValueError(f"provider error: {response['error']}")
        rows = response["result"]
        if not isinstance(rows, list):
            raise ValueError("quoteResponse.result is not a list")
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        error = FetchError(FetchErrorKind.PARSE_FAILURE, f"malformed payload: {e}")
        return {symbol: error for symbol in symbols}

    wanted = {symbol.upper() for symbol in symbols}
    results: dict[str, FetchResult] = {}
    for row in rows:
        if not isinstance(row, dict):
            continue
        symbol = str(row.get("symbol", "")).upper()
        if symbol not in wanted:
            continue
        try:
            results[symbol] = parse_quote_row(row, fetched_at)
        except (KeyError, ValueError, TypeError, InvalidOperation) as e:
            logger.warning("Unparsable Yahoo quote for %s: %s", symbol, e)
            results[symbol] = FetchError(
                FetchErrorKind.PARSE_FAILURE, f"unexpected quote schema: {e}"
            )

    for symbol in wanted - results.keys():
        results[symbol] = FetchError(
            FetchErrorKind.INVALID_SYMBOL, "symbol not returned by provider"
        )
    return results


class YahooProvider:
    """Batched quotes from the Yahoo Finance v7 quote endpoint."""

    name = "yahoo"

    def __init__(self, config: ProviderConfig) -> None:
        self.url = config.base_url or DEFAULT_URL
        self.batch_size = config.batch_size or DEFAULT_BATCH_SIZE

    def build_request(self, symbols: Sequence[str]) -> tuple[str, dict[str, Any]]:
        return self.url, {"symbols": ",".join(symbols)}

    def parse(
        self, body: str, symbols: Sequence[str], fetched_at: datetime
    ) -> dict[str, FetchResult]:
        return parse_quote_response(body, symbols, fetched_at)
