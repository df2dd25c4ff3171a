"""Holdings loading — inline config list or CSV file — and consolidation."""
from __future__ import annotations

import csv
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable

from .config import AppConfig, ConfigError, HoldingSpec
from .models import Holding

logger = logging.getLogger(__name__)

# Column aliases; the first spelling of each is what the CSV template uses.
_SYMBOL_COLUMNS = ("ticker", "symbol")
_SHARES_COLUMNS = ("shares", "quantity")
_COST_COLUMNS = ("buy_price", "cost_basis")


def _to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, float):
        value = repr(value)
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"not a number: {value!r}") from e
    if not number.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return number


def parse_holding(symbol: Any, shares: Any, cost_basis: Any = None) -> Holding:
    """Build a Holding from loosely typed input.

    Raises:
        ValueError: the symbol is missing or a number is malformed or negative.
    """
    if not isinstance(symbol, str) or not symbol.strip():
        raise ValueError(f"missing symbol: {symbol!r}")
    share_count = _to_decimal(shares)
    if share_count is None:
        raise ValueError(f"missing share count for {symbol.strip().upper()}")
    return Holding(
        symbol=symbol,
        shares=share_count,
        cost_basis=_to_decimal(cost_basis),
    )


def holdings_from_specs(specs: Iterable[HoldingSpec]) -> list[Holding]:
    """Convert inline config entries, skipping malformed ones with a warning."""
    holdings: list[Holding] = []
    for index, spec in enumerate(specs, start=1):
        try:
            holdings.append(parse_holding(spec.symbol, spec.shares, spec.cost_basis))
        except ValueError as e:
            logger.warning("Skipping holding #%d in config: %s", index, e)
    return holdings


def _pick(row: dict[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        if name in row:
            return row[name]
    return None


def read_holdings_csv(path: str | Path) -> list[Holding]:
    """Read holdings from a CSV file with a ``ticker,buy_price,shares`` header.

    Malformed rows are skipped with a warning.

    Raises:
        ConfigError: the file is absent or unreadable, or has no symbol column.
    """
    path = Path(path).expanduser()
    try:
        with open(path, newline="") as f:
            reader = csv.DictReader(f)
            if reader.fieldnames is None:
                return []
            columns = {name.strip().lower() for name in reader.fieldnames if name}
            if not columns.intersection(_SYMBOL_COLUMNS):
                raise ConfigError(
                    f"Holdings file {path} has no 'ticker' or 'symbol' column"
                )
            rows = list(reader)
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read holdings file {path}: {e}") from e

    holdings: list[Holding] = []
    # Line 1 is the header.
    for line_no, row in enumerate(rows, start=2):
        normalized = {
            (k or "").strip().lower(): v for k, v in row.items() if k is not None
        }
        if not any((v or "").strip() for v in normalized.values()):
            continue
        try:
            holdings.append(
                parse_holding(
                    _pick(normalized, _SYMBOL_COLUMNS),
                    _pick(normalized, _SHARES_COLUMNS),
                    _pick(normalized, _COST_COLUMNS),
                )
            )
        except ValueError as e:
            logger.warning("Skipping %s line %d: %s", path.name, line_no, e)
    return holdings


def consolidate(holdings: Iterable[Holding]) -> list[Holding]:
    """Merge holdings that share a symbol.

    Shares are summed and the cost basis becomes the share-weighted average.
    If any merged lot lacks a cost basis the merged holding has none. Output
    keeps the order in which each symbol first appears.
    """
    merged: dict[str, list[Holding]] = {}
    for holding in holdings:
        merged.setdefault(holding.symbol, []).append(holding)

    result: list[Holding] = []
    for symbol, lots in merged.items():
        if len(lots) == 1:
            result.append(lots[0])
            continue
        shares = sum((lot.shares for lot in lots), Decimal("0"))
        cost_basis: Decimal | None = None
        if shares > 0 and all(lot.cost_basis is not None for lot in lots):
            total_cost = sum(
                (lot.shares * lot.cost_basis for lot in lots),  # type: ignore[operator]
                Decimal("0"),
            )
            cost_basis = total_cost / shares
        result.append(Holding(symbol=symbol, shares=shares, cost_basis=cost_basis))
    return result


def load_holdings(config: AppConfig, holdings_file: str | Path | None = None) -> list[Holding]:
    """Load holdings for one invocation.

    An explicit ``holdings_file`` wins, then inline ``portfolio.holdings``
    entries, then ``portfolio.holdings_file``.
    """
    portfolio = config.portfolio
    if holdings_file is not None:
        holdings = read_holdings_csv(holdings_file)
    elif portfolio.holdings:
        holdings = holdings_from_specs(portfolio.holdings)
    else:
        holdings = read_holdings_csv(portfolio.holdings_file)

    if portfolio.consolidate:
        holdings = consolidate(holdings)

    logger.info("Loaded %d holding(s)", len(holdings))
    return holdings
