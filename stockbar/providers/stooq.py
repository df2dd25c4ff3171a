"""Stooq light quote CSV — request building and pure response parsing."""
from __future__ import annotations

import csv
import io
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from ..config import ProviderConfig
from ..models import FetchError, FetchErrorKind, FetchResult, Quote

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://stooq.com/q/l/"
DEFAULT_BATCH_SIZE = 20
# symbol, date, time, open, high, low, close, previous close
FIELDS = "sd2t2ohlcp"
NO_DATA = "N/D"


def to_stooq_symbol(symbol: str, suffix: str) -> str:
    """``AAPL`` → ``aapl.us``; symbols that already carry a market are kept."""
    symbol = symbol.lower()
    if suffix and "." not in symbol:
        return symbol + suffix.lower()
    return symbol


def from_stooq_symbol(symbol: str, suffix: str) -> str:
    symbol = symbol.strip().upper()
    if suffix and symbol.endswith(suffix.upper()):
        return symbol[: -len(suffix)]
    return symbol


def _decimal(value: str | None, column: str) -> Decimal:
    if value is None:
        raise ValueError(f"missing {column} column")
    number = Decimal(value.strip())
    if not number.is_finite() or number < 0:
        raise ValueError(f"{column} out of range: {value!r}")
    return number


def parse_quote_csv(
    body: str,
    symbols: Sequence[str],
    fetched_at: datetime,
    suffix: str = ".us",
    currency: str = "USD",
) -> dict[str, FetchResult]:
    """Parse a Stooq CSV payload into a result for every requested symbol.

    Rows whose close is ``N/D`` are unknown symbols (INVALID_SYMBOL). A body
    without the expected header fails every symbol with PARSE_FAILURE.
    """
    reader = csv.DictReader(io.StringIO(body))
    try:
        header = [name.strip() for name in (reader.fieldnames or [])]
        rows = list(reader)
    except csv.Error as e:
        error = FetchError(FetchErrorKind.PARSE_FAILURE, f"malformed CSV: {e}")
        return {symbol: error for symbol in symbols}

    if "Symbol" not in header or "Close" not in header or "Prev" not in header:
        error = FetchError(
            FetchErrorKind.PARSE_FAILURE, f"unexpected CSV header: {header}"
        )
        return {symbol: error for symbol in symbols}

    wanted = {symbol.upper() for symbol in symbols}
    results: dict[str, FetchResult] = {}

    for row in rows:
        row = {(k or "").strip(): v for k, v in row.items()}
        raw_symbol = (row.get("Symbol") or "").strip().upper()
        symbol = (
            raw_symbol if raw_symbol in wanted else from_stooq_symbol(raw_symbol, suffix)
        )
        if symbol not in wanted:
            continue
        close = (row.get("Close") or "").strip()
        if close == NO_DATA:
            results[symbol] = FetchError(
                FetchErrorKind.INVALID_SYMBOL, "no data for symbol"
            )
            continue
        try:
            results[symbol] = Quote(
                symbol=symbol,
                price=_decimal(row.get("Close"), "Close"),
                previous_close=_decimal(row.get("Prev"), "Prev"),
                fetched_at=fetched_at,
                currency=currency,
            )
        except (ValueError, InvalidOperation) as e:
            logger.warning("Unparsable Stooq row for %s: %s", symbol, e)
            results[symbol] = FetchError(
                FetchErrorKind.PARSE_FAILURE, f"unexpected row: {e}"
            )

    for symbol in wanted - results.keys():
        results[symbol] = FetchError(
            FetchErrorKind.INVALID_SYMBOL, "symbol not returned by provider"
        )
    return results


class StooqProvider:
    """Batched quotes from the Stooq light quote CSV endpoint."""

    name = "stooq"

    def __init__(self, config: ProviderConfig) -> None:
        self.url = config.base_url or DEFAULT_URL
        self.batch_size = config.batch_size or DEFAULT_BATCH_SIZE
        self.suffix = config.market_suffix

    def build_request(self, symbols: Sequence[str]) -> tuple[str, dict[str, Any]]:
        # Stooq separates symbols with a literal '+', which a params dict would escape.
        joined = "+".join(to_stooq_symbol(s, self.suffix) for s in symbols)
        return f"{self.url}?s={joined}&f={FIELDS}&h&e=csv", {}

    def parse(
        self, body: str, symbols: Sequence[str], fetched_at: datetime
    ) -> dict[str, FetchResult]:
        return parse_quote_csv(body, symbols, fetched_at, suffix=self.suffix)
