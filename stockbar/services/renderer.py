"""Text rendering for the menu-bar host — pure formatting, no I/O.

Output is one summary line followed by exactly one line per holding. Lines
may carry xbar parameters after a ``|`` separator.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from ..config import DisplayConfig
from ..models import PortfolioSummary, Position

NO_HOLDINGS = "no holdings configured"
DATA_UNAVAILABLE = "data unavailable"
NOT_AVAILABLE = "N/A"
DEGRADED_MARKER = "⚠"

COLOR_UP = "green"
COLOR_DOWN = "darkred"
COLOR_UNKNOWN = "gray"

_CENT = Decimal("0.01")


def _round(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal, symbol: str = "$", signed: bool = False) -> str:
    """``1234.5`` → ``$1,234.50``; with ``signed`` → ``+$1,234.50`` / ``-$1,234.50``."""
    rounded = _round(value)
    text = f"{symbol}{abs(rounded):,.2f}"
    if signed:
        return ("-" if rounded < 0 else "+") + text
    return ("-" + text) if rounded < 0 else text


def format_percent(value: Decimal) -> str:
    """``1.3513`` → ``+1.35%``."""
    rounded = _round(value)
    sign = "-" if rounded < 0 else "+"
    return f"{sign}{abs(rounded):.2f}%"


def _color(change: Decimal | None) -> str:
    if change is None:
        return COLOR_UNKNOWN
    return COLOR_DOWN if _round(change) < 0 else COLOR_UP


def _with_params(text: str, color: str, display: DisplayConfig) -> str:
    if display.colors:
        return f"{text} | color={color}"
    return text


def render_summary_line(summary: PortfolioSummary, display: DisplayConfig) -> str:
    if not summary.has_data:
        return _with_params(DATA_UNAVAILABLE, COLOR_UNKNOWN, display)

    cur = display.currency_symbol
    parts = [
        format_money(summary.total_value, cur),
        format_money(summary.total_day_change, cur, signed=True),
        f"({format_percent(summary.total_day_change_pct)})",
    ]
    text = " ".join(parts)
    if summary.total_gain is not None and summary.total_gain_pct is not None:
        text += (
            f" · gain {format_money(summary.total_gain, cur, signed=True)}"
            f" ({format_percent(summary.total_gain_pct)})"
        )
    if summary.stale_symbols:
        text += f" {DEGRADED_MARKER}"
    return _with_params(text, _color(summary.total_day_change), display)


def render_position_line(position: Position, display: DisplayConfig) -> str:
    cur = display.currency_symbol
    price = position.price
    day_change = position.day_change
    day_change_pct = position.day_change_pct

    if price is None or day_change is None or day_change_pct is None:
        text = f"{position.symbol} {NOT_AVAILABLE}"
        color = COLOR_UNKNOWN
    else:
        text = (
            f"{position.symbol} {format_money(price, cur)}"
            f" {format_money(day_change, cur, signed=True)}"
            f" ({format_percent(day_change_pct)})"
        )
        gain = position.total_gain
        gain_pct = position.total_gain_pct
        if gain is None or gain_pct is None:
            text += f" · gain {NOT_AVAILABLE}"
        else:
            text += (
                f" · gain {format_money(gain, cur, signed=True)}"
                f" ({format_percent(gain_pct)})"
            )
        color = COLOR_UNKNOWN if position.stale else _color(day_change)

    if position.stale:
        text += f" {display.stale_marker}"
    return _with_params(text, color, display)


def render(summary: PortfolioSummary, display: DisplayConfig | None = None) -> str:
    """Render a summary as newline-joined text, without a trailing newline."""
    display = display or DisplayConfig()
    if summary.is_empty:
        return NO_HOLDINGS

    lines = [render_summary_line(summary, display)]
    lines.extend(render_position_line(p, display) for p in summary.positions)
    return "\n".join(lines)
