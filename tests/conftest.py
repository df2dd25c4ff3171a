"""Shared test fixtures and sample data."""
from __future__ import annotations

import json
import textwrap
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from stockbar.config import (
    AppConfig,
    CacheConfig,
    DisplayConfig,
    PortfolioConfig,
    ProviderConfig,
)
from stockbar.models import Holding, Quote
from stockbar.services.quote_cache import QuoteCache

NOW = datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_provider_config() -> ProviderConfig:
    return ProviderConfig(name="yahoo", base_url="https://quotes.example.com/v7/quote")


@pytest.fixture()
def sample_app_config(sample_provider_config: ProviderConfig) -> AppConfig:
    return AppConfig(
        provider=sample_provider_config,
        cache=CacheConfig(enabled=False, ttl_seconds=285),
        display=DisplayConfig(colors=False),
        portfolio=PortfolioConfig(),
    )


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_holdings() -> list[Holding]:
    return [
        Holding(symbol="AAPL", shares=Decimal("10"), cost_basis=Decimal("100")),
        Holding(symbol="MSFT", shares=Decimal("5"), cost_basis=Decimal("200")),
    ]


@pytest.fixture()
def make_quote() -> Callable[..., Quote]:
    def factory(
        symbol: str,
        price: str,
        previous_close: str,
        fetched_at: datetime = NOW,
    ) -> Quote:
        return Quote(
            symbol=symbol,
            price=Decimal(price),
            previous_close=Decimal(previous_close),
            fetched_at=fetched_at,
        )

    return factory


@pytest.fixture()
def aapl_quote(make_quote: Callable[..., Quote]) -> Quote:
    return make_quote("AAPL", "150", "148")


@pytest.fixture()
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture()
def memory_cache(clock: Callable[[], datetime]) -> QuoteCache:
    return QuoteCache(path=None, ttl_seconds=285, clock=clock)


# ---------------------------------------------------------------------------
# Provider payloads
# ---------------------------------------------------------------------------


def yahoo_row(symbol: str, price: float, previous_close: float, currency: str = "USD") -> dict:
    return {
        "symbol": symbol,
        "regularMarketPrice": price,
        "regularMarketPreviousClose": previous_close,
        "currency": currency,
    }


@pytest.fixture()
def yahoo_body() -> Callable[..., str]:
    def factory(*rows: dict) -> str:
        return json.dumps({"quoteResponse": {"result": list(rows), "error": None}})

    return factory


@pytest.fixture()
def yahoo_rows() -> Callable[..., dict]:
    return yahoo_row


# ---------------------------------------------------------------------------
# aiohttp mocks
# ---------------------------------------------------------------------------


def _mock_response(status: int, body: str = "") -> AsyncMock:
    response = AsyncMock()
    response.status = status
    response.text = AsyncMock(return_value=body)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


@pytest.fixture()
def mock_session() -> Callable[..., AsyncMock]:
    """Build a mocked ClientSession.

    Each outcome is either ``(status, body)`` or an exception instance, used
    in call order. Pass a callable instead to pick a response per request.
    """

    def factory(*outcomes: Any) -> AsyncMock:
        session = AsyncMock()
        if len(outcomes) == 1 and callable(outcomes[0]):
            route = outcomes[0]

            def side_effect(url: str, params: Any = None) -> Any:
                outcome = route(url, params)
                if isinstance(outcome, BaseException):
                    raise outcome
                return _mock_response(*outcome)

            session.get = MagicMock(side_effect=side_effect)
        else:
            items = [
                o if isinstance(o, BaseException) else _mock_response(*o)
                for o in outcomes
            ]
            session.get = MagicMock(side_effect=items)
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=None)
        return session

    return factory


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    provider:
      name: yahoo
      timeout_seconds: 3
      batch_size: 10
      max_concurrency: 2
    cache:
      enabled: true
      path: "${STOCKBAR_TEST_CACHE}"
      ttl_seconds: 240
    display:
      currency_symbol: "€"
      colors: false
    portfolio:
      consolidate: true
      holdings:
        - {symbol: aapl, shares: 10, cost_basis: 100}
        - {symbol: MSFT, shares: 5}
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("STOCKBAR_TEST_CACHE", str(tmp_path / "quotes.json"))
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep tests away from the user's real config and .env files."""
    monkeypatch.delenv("STOCKBAR_CONFIG", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
