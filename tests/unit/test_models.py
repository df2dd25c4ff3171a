"""Unit tests for data models."""
from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from stockbar.models import (
    CacheEntry,
    FetchError,
    FetchErrorKind,
    Holding,
    Position,
    PortfolioSummary,
    Quote,
    percent_change,
)


class TestHolding:
    def test_symbol_normalized(self) -> None:
        h = Holding(symbol=" aapl ", shares=Decimal("1"))
        assert h.symbol == "AAPL"
        assert h.cost_basis is None

    def test_frozen(self) -> None:
        h = Holding(symbol="AAPL", shares=Decimal("1"))
        with pytest.raises(AttributeError):
            h.shares = Decimal("2")  # type: ignore[misc]

    def test_negative_shares_rejected(self) -> None:
        with pytest.raises(ValueError, match="negative shares"):
            Holding(symbol="AAPL", shares=Decimal("-1"))

    def test_negative_cost_basis_rejected(self) -> None:
        with pytest.raises(ValueError, match="negative cost basis"):
            Holding(symbol="AAPL", shares=Decimal("1"), cost_basis=Decimal("-5"))

    def test_empty_symbol_rejected(self) -> None:
        with pytest.raises(ValueError):
            Holding(symbol="", shares=Decimal("1"))


class TestPercentChange:
    def test_regular(self) -> None:
        assert percent_change(Decimal("110"), Decimal("100")) == Decimal("10")

    def test_zero_base_is_zero(self) -> None:
        assert percent_change(Decimal("5"), Decimal("0")) == Decimal("0")


class TestQuote:
    def test_change_pct_zero_previous_close(self, make_quote) -> None:
        q = make_quote("NEW", "12.50", "0")
        assert q.change == Decimal("12.50")
        assert q.change_pct == Decimal("0")

    @pytest.mark.parametrize(
        "price, previous_close",
        [("NaN", "148"), ("Infinity", "148"), ("150", "-1"), ("-0.01", "148")],
    )
    def test_rejects_non_finite_or_negative(
        self, make_quote, price: str, previous_close: str
    ) -> None:
        with pytest.raises(ValueError):
            make_quote("AAPL", price, previous_close)


class TestFetchError:
    @pytest.mark.parametrize(
        "kind, transient",
        [
            (FetchErrorKind.TIMEOUT, True),
            (FetchErrorKind.NETWORK_FAILURE, True),
            (FetchErrorKind.INVALID_SYMBOL, False),
            (FetchErrorKind.PARSE_FAILURE, False),
        ],
    )
    def test_transient(self, kind: FetchErrorKind, transient: bool) -> None:
        assert FetchError(kind).transient is transient

    def test_str(self) -> None:
        assert str(FetchError(FetchErrorKind.TIMEOUT, "5s")) == "timeout: 5s"
        assert str(FetchError(FetchErrorKind.TIMEOUT)) == "timeout"


class TestCacheEntry:
    def test_expiry(self, aapl_quote: Quote) -> None:
        entry = CacheEntry(
            symbol="AAPL",
            quote=aapl_quote,
            expires_at=aapl_quote.fetched_at + timedelta(seconds=60),
        )
        assert not entry.is_expired(aapl_quote.fetched_at + timedelta(seconds=60))
        assert entry.is_expired(aapl_quote.fetched_at + timedelta(seconds=61))

    def test_must_expire_after_fetch(self, aapl_quote: Quote) -> None:
        with pytest.raises(ValueError):
            CacheEntry(symbol="AAPL", quote=aapl_quote, expires_at=aapl_quote.fetched_at)


class TestPosition:
    def test_derived_values(self, aapl_quote: Quote) -> None:
        p = Position(
            holding=Holding(symbol="AAPL", shares=Decimal("10"), cost_basis=Decimal("100")),
            quote=aapl_quote,
        )
        assert p.market_value == Decimal("1500")
        assert p.day_change == Decimal("20")
        assert p.cost == Decimal("1000")
        assert p.total_gain == Decimal("500")
        assert p.total_gain_pct == Decimal("50")
        assert p.available

    def test_unknown_when_no_quote(self) -> None:
        p = Position(holding=Holding(symbol="MSFT", shares=Decimal("5")), stale=True)
        assert p.price is None
        assert p.market_value is None
        assert p.day_change is None
        assert p.day_change_pct is None
        assert p.total_gain is None
        assert not p.available

    def test_gain_unknown_without_cost_basis(self, aapl_quote: Quote) -> None:
        p = Position(holding=Holding(symbol="AAPL", shares=Decimal("10")), quote=aapl_quote)
        assert p.market_value == Decimal("1500")
        assert p.total_gain is None
        assert p.total_gain_pct is None


class TestPortfolioSummary:
    def test_defaults(self) -> None:
        s = PortfolioSummary()
        assert s.is_empty
        assert not s.has_data
        assert s.total_value == Decimal("0")
        assert s.stale_symbols == frozenset()
