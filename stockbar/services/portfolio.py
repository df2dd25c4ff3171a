"""Portfolio aggregation — pure functions, no I/O."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Mapping, Sequence

from ..models import (
    Fresh,
    Holding,
    PortfolioSummary,
    Position,
    Resolution,
    Stale,
    Unavailable,
    percent_change,
)

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


def build_position(holding: Holding, resolution: Resolution | None) -> Position:
    """Join a holding with its resolved quote."""
    if isinstance(resolution, Fresh):
        return Position(holding=holding, quote=resolution.quote, stale=False)
    if isinstance(resolution, Stale):
        return Position(holding=holding, quote=resolution.quote, stale=True)
    if isinstance(resolution, Unavailable) or resolution is None:
        return Position(holding=holding, quote=None, stale=True)
    raise TypeError(f"Unknown resolution for {holding.symbol}: {resolution!r}")


def aggregate(
    holdings: Sequence[Holding], resolutions: Mapping[str, Resolution]
) -> PortfolioSummary:
    """Combine holdings with resolved quotes into a portfolio summary.

    Positions keep configuration order. Holdings without a quote stay in the
    output with unknown values, are left out of every total and are listed
    in ``stale_symbols`` together with holdings served from a stale quote.
    Cost and gain totals only cover positions with both a quote and a cost
    basis; ``total_gain`` is ``None`` when no such position exists.
    """
    positions: list[Position] = []
    stale_symbols: set[str] = set()

    total_value = _ZERO
    total_day_change = _ZERO
    total_cost = _ZERO
    gain_value = _ZERO
    has_gain = False

    for holding in holdings:
        position = build_position(holding, resolutions.get(holding.symbol))
        positions.append(position)

        if position.quote is not None and position.quote.previous_close == 0:
            logger.info(
                "Previous close for %s is 0; reporting day change as 0%%", holding.symbol
            )

        if position.stale:
            stale_symbols.add(holding.symbol)

        market_value = position.market_value
        day_change = position.day_change
        if market_value is None or day_change is None:
            continue

        total_value += market_value
        total_day_change += day_change

        cost = position.cost
        if cost is not None:
            has_gain = True
            total_cost += cost
            gain_value += market_value

    previous_value = total_value - total_day_change
    total_gain = gain_value - total_cost if has_gain else None
    total_gain_pct = percent_change(gain_value, total_cost) if has_gain else None

    if stale_symbols:
        logger.info("Degraded symbols: %s", ", ".join(sorted(stale_symbols)))

    return PortfolioSummary(
        positions=tuple(positions),
        total_value=total_value,
        total_day_change=total_day_change,
        total_day_change_pct=percent_change(total_value, previous_value),
        total_cost=total_cost,
        total_gain=total_gain,
        total_gain_pct=total_gain_pct,
        stale_symbols=frozenset(stale_symbols),
    )
