"""Data models — all frozen (immutable)."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Union

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def percent_change(current: Decimal, base: Decimal) -> Decimal:
    """Return ``(current - base) / base * 100``, or 0 when ``base`` is 0."""
    if base == 0:
        return _ZERO
    return (current - base) / base * _HUNDRED


# ---------------------------------------------------------------------------
# Configured input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Holding:
    """One configured portfolio line: symbol, share count, optional cost basis."""

    symbol: str
    shares: Decimal
    cost_basis: Decimal | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbol", self.symbol.strip().upper())
        if not self.symbol:
            raise ValueError("Holding symbol must not be empty")
        if self.shares < 0:
            raise ValueError(f"Holding {self.symbol} has negative shares")
        if self.cost_basis is not None and self.cost_basis < 0:
            raise ValueError(f"Holding {self.symbol} has negative cost basis")


# ---------------------------------------------------------------------------
# Quotes and fetch results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Quote:
    """Current and previous-close price for a symbol at ``fetched_at``."""

    symbol: str
    price: Decimal
    previous_close: Decimal
    fetched_at: datetime
    currency: str = "USD"

    def __post_init__(self) -> None:
        for name in ("price", "previous_close"):
            value = getattr(self, name)
            if not value.is_finite() or value < 0:
                raise ValueError(f"Quote {self.symbol} has invalid {name}: {value}")

    @property
    def change(self) -> Decimal:
        return self.price - self.previous_close

    @property
    def change_pct(self) -> Decimal:
        return percent_change(self.price, self.previous_close)


class FetchErrorKind(enum.Enum):
    TIMEOUT = "timeout"
    NETWORK_FAILURE = "network_failure"
    INVALID_SYMBOL = "invalid_symbol"
    PARSE_FAILURE = "parse_failure"


@dataclass(frozen=True)
class FetchError:
    """Per-symbol fetch failure. A value, never raised."""

    kind: FetchErrorKind
    message: str = ""

    @property
    def transient(self) -> bool:
        """Timeouts and network failures are worth one immediate retry."""
        return self.kind in (FetchErrorKind.TIMEOUT, FetchErrorKind.NETWORK_FAILURE)

    def __str__(self) -> str:
        if self.message:
            return f"{self.kind.value}: {self.message}"
        return self.kind.value


FetchResult = Union[Quote, FetchError]


# ---------------------------------------------------------------------------
# Per-symbol resolution handed to the aggregator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Fresh:
    quote: Quote


@dataclass(frozen=True)
class Stale:
    """Quote served from an expired cache entry after a failed fetch."""

    quote: Quote
    error: FetchError | None = None


@dataclass(frozen=True)
class Unavailable:
    error: FetchError | None = None


Resolution = Union[Fresh, Stale, Unavailable]


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheEntry:
    symbol: str
    quote: Quote
    expires_at: datetime

    def __post_init__(self) -> None:
        if self.expires_at <= self.quote.fetched_at:
            raise ValueError(
                f"Cache entry for {self.symbol} expires before it was fetched"
            )

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


# ---------------------------------------------------------------------------
# Derived portfolio views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Position:
    """A holding joined with its quote. ``None`` values mean "unknown"."""

    holding: Holding
    quote: Quote | None = None
    stale: bool = False

    @property
    def symbol(self) -> str:
        return self.holding.symbol

    @property
    def available(self) -> bool:
        return self.quote is not None

    @property
    def price(self) -> Decimal | None:
        return self.quote.price if self.quote is not None else None

    @property
    def market_value(self) -> Decimal | None:
        if self.quote is None:
            return None
        return self.holding.shares * self.quote.price

    @property
    def day_change(self) -> Decimal | None:
        if self.quote is None:
            return None
        return self.quote.change * self.holding.shares

    @property
    def day_change_pct(self) -> Decimal | None:
        if self.quote is None:
            return None
        return self.quote.change_pct

    @property
    def cost(self) -> Decimal | None:
        if self.holding.cost_basis is None:
            return None
        return self.holding.shares * self.holding.cost_basis

    @property
    def total_gain(self) -> Decimal | None:
        market_value = self.market_value
        cost = self.cost
        if market_value is None or cost is None:
            return None
        return market_value - cost

    @property
    def total_gain_pct(self) -> Decimal | None:
        market_value = self.market_value
        cost = self.cost
        if market_value is None or cost is None:
            return None
        return percent_change(market_value, cost)


@dataclass(frozen=True)
class PortfolioSummary:
    """Aggregated view of one refresh cycle."""

    positions: tuple[Position, ...] = ()
    total_value: Decimal = _ZERO
    total_day_change: Decimal = _ZERO
    total_day_change_pct: Decimal = _ZERO
    total_cost: Decimal = _ZERO
    total_gain: Decimal | None = None
    total_gain_pct: Decimal | None = None
    stale_symbols: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.positions

    @property
    def has_data(self) -> bool:
        return any(p.available for p in self.positions)
