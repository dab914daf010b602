"""
Display formatting services for the optionbook CLI.

This module turns positions, chains and summary figures into the strings shown
in tables. Undefined ratios (zero collateral) render as an em dash.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

from ..core.models import Chain
from .chains import ChainValuation
from .portfolio import (
    PeriodPerformance,
    PortfolioSummary,
    StrategyPerformance,
    TickerPerformance,
)
from .valuation import AnyPosition, PositionValuation, is_undefined, strategy_type

UNDEFINED_DISPLAY = "—"


def format_currency(value: Decimal | None) -> str:
    """Format a decimal value as currency."""
    if value is None:
        return "--"
    if not value.is_finite():
        return UNDEFINED_DISPLAY
    quantized = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    quantized = abs(quantized)
    return f"{sign}${quantized:,.2f}"


def format_percent(value: Decimal | None) -> str:
    """Format a value that is already a percentage (``12.5`` -> ``12.5%``)."""
    if is_undefined(value):
        return UNDEFINED_DISPLAY
    percent = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)  # type: ignore[union-attr]
    text = f"{percent:,.2f}"
    if text.endswith(".00"):
        text = text[:-3]
    elif text.endswith("0"):
        text = text[:-1]
    return f"{text}%"


def format_price(value: Decimal | None) -> str:
    """Per-share price with two decimals, no currency grouping."""
    if value is None:
        return "--"
    return f"{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):f}"


def format_days(value: Optional[int]) -> str:
    if value is None:
        return "--"
    return f"{value}d"


def prepare_position_display(
    position: AnyPosition, valuation: PositionValuation
) -> Dict[str, str]:
    """Prepare one position row for table rendering."""
    return {
        "id": position.id,
        "contract": position.position_spec,
        "strategy": strategy_type(position).value,
        "direction": position.direction.value,
        "contracts": str(position.contracts),
        "premium": format_price(position.premium),
        "status": position.status.value,
        "break_even": format_price(valuation.break_even),
        "dte": format_days(valuation.days_to_expiry),
        "days_held": format_days(valuation.days_held),
        "pnl": format_currency(valuation.profit_loss),
        "collateral": format_currency(valuation.collateral),
        "ror": format_percent(valuation.return_on_risk),
        "annualized_ror": (
            format_percent(valuation.annualized_return_on_risk)
            if valuation.annualized_return_on_risk is not None
            else "--"
        ),
        "chain": position.chain_id or "",
    }


def prepare_chain_display(
    chain: Chain, valuation: ChainValuation, leg_count: int
) -> Dict[str, str]:
    """Prepare chain data for display formatting."""
    strike = chain.original_strike.normalize()
    return {
        "id": chain.id,
        "display_name": f"{chain.symbol} ${strike:f} {chain.option_kind.value}",
        "opened": chain.original_open_date.isoformat(),
        "status": chain.status.value,
        "legs": str(leg_count),
        "pnl": format_currency(valuation.profit_loss),
        "collateral": format_currency(valuation.collateral),
        "ror": format_percent(valuation.return_on_risk),
    }


def prepare_strategy_display(row: StrategyPerformance) -> Dict[str, str]:
    return {
        "strategy": row.strategy.value,
        "trades": str(row.trade_count),
        "realized": str(row.realized_count),
        "open": str(row.open_count),
        "pnl": format_currency(row.total_pnl),
        "avg_ror": format_percent(row.avg_ror),
        "win_rate": format_percent(row.win_rate),
    }


def prepare_period_display(row: PeriodPerformance) -> Dict[str, str]:
    return {
        "period": row.period,
        "trades": str(row.trade_count),
        "wins": str(row.winning_trades),
        "losses": str(row.losing_trades),
        "pnl": format_currency(row.total_pnl),
        "fees": format_currency(row.total_fees),
        "win_rate": format_percent(row.win_rate),
        "avg_days_held": f"{row.average_days_held.quantize(Decimal('0.1'))}",
    }


def prepare_ticker_display(row: TickerPerformance) -> Dict[str, str]:
    return {
        "symbol": row.symbol,
        "trades": str(row.trade_count),
        "pnl": format_currency(row.total_pnl),
        "collateral": format_currency(row.total_collateral),
        "ror": format_percent(row.return_on_risk),
        "annualized_ror": format_percent(row.annualized_return_on_risk),
    }


def prepare_summary_display(summary: PortfolioSummary) -> Dict[str, str]:
    """Headline figures for the summary panel."""
    return {
        "Open positions": str(summary.open_count),
        "Realized positions": str(summary.realized_count),
        "Realized P&L": format_currency(summary.realized_pnl),
        "Unrealized P&L": format_currency(summary.unrealized_pnl),
        "Total fees": format_currency(summary.total_fees),
        "Win rate": format_percent(summary.win_rate),
        "Average days held": f"{summary.average_days_held.quantize(Decimal('0.1'))}",
        "Return on risk": format_percent(summary.return_on_risk),
        "Average RoR": format_percent(summary.average_return_on_risk),
    }
