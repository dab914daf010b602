"""JSON serialization utilities for positions, chains and portfolio summaries."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from ..core.models import Chain
from .chains import ChainValuation
from .consistency import InconsistentChainState
from .portfolio import (
    PeriodPerformance,
    PortfolioSummary,
    StrategyPerformance,
    TickerPerformance,
)
from .roll import RollResult
from .valuation import AnyPosition, PositionValuation, strategy_type


def serialize_decimal(value: Any) -> Any:
    """Serialize Decimal values to JSON-compatible strings; non-finite values become ``None``."""
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        normalized = value.normalize()
        return format(normalized, "f")
    return value


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None else None


def serialize_position(position: AnyPosition) -> Dict[str, Any]:
    """Serialize a stored position record."""
    return {
        "id": position.id,
        "portfolio_id": position.portfolio_id,
        "symbol": position.symbol,
        "option_kind": position.option_kind.value,
        "direction": position.direction.value,
        "strategy": strategy_type(position).value,
        "strike": serialize_decimal(position.strike),
        "premium": serialize_decimal(position.premium),
        "contracts": position.contracts,
        "open_date": position.open_date.isoformat(),
        "expiry_date": position.expiry_date.isoformat(),
        "status": position.status.value,
        "exit_price": serialize_decimal(position.exit_price),
        "close_date": _iso(position.close_date),
        "fees": serialize_decimal(position.fees),
        "chain_id": position.chain_id,
        "collateral_override": serialize_decimal(position.collateral_override),
        "break_even": serialize_decimal(position.break_even),
        "profit_loss": serialize_decimal(position.profit_loss),
        "annualized_ror": serialize_decimal(position.annualized_ror),
    }


def serialize_valuation(valuation: PositionValuation) -> Dict[str, Any]:
    return {
        "break_even": serialize_decimal(valuation.break_even),
        "days_to_expiry": valuation.days_to_expiry,
        "days_held": valuation.days_held,
        "profit_loss": serialize_decimal(valuation.profit_loss),
        "collateral": serialize_decimal(valuation.collateral),
        "return_on_risk": serialize_decimal(valuation.return_on_risk),
        "annualized_return_on_risk": serialize_decimal(valuation.annualized_return_on_risk),
    }


def serialize_valued_position(
    position: AnyPosition,
    valuation: PositionValuation,
    *,
    mark_price: Optional[Decimal] = None,
) -> Dict[str, Any]:
    """Position record plus its valuation, and the underlying mark when known."""
    payload = serialize_position(position)
    payload["valuation"] = serialize_valuation(valuation)
    payload["mark_price"] = serialize_decimal(mark_price)
    return payload


def serialize_chain(
    chain: Chain,
    valuation: Optional[ChainValuation] = None,
    legs: Optional[Iterable[AnyPosition]] = None,
) -> Dict[str, Any]:
    """Serialize a chain, optionally with aggregate figures and member legs."""
    payload: Dict[str, Any] = {
        "id": chain.id,
        "portfolio_id": chain.portfolio_id,
        "symbol": chain.symbol,
        "option_kind": chain.option_kind.value,
        "original_strike": serialize_decimal(chain.original_strike),
        "original_open_date": chain.original_open_date.isoformat(),
        "status": chain.status.value,
    }
    if valuation is not None:
        payload["profit_loss"] = serialize_decimal(valuation.profit_loss)
        payload["collateral"] = serialize_decimal(valuation.collateral)
        payload["return_on_risk"] = serialize_decimal(valuation.return_on_risk)
    if legs is not None:
        payload["legs"] = [serialize_position(leg) for leg in legs]
    return payload


def serialize_roll_result(result: RollResult) -> Dict[str, Any]:
    return {
        "chain": serialize_chain(result.chain),
        "chain_created": result.chain_created,
        "realized_source": serialize_position(result.realized_source),
        "new_leg": serialize_position(result.new_leg),
    }


def serialize_warning(warning: InconsistentChainState) -> Dict[str, Any]:
    return {
        "chain_id": warning.chain_id,
        "kind": warning.kind,
        "open_leg_count": warning.open_leg_count,
        "message": warning.message,
    }


def serialize_strategy_performance(row: StrategyPerformance) -> Dict[str, Any]:
    return {
        "strategy": row.strategy.value,
        "trade_count": row.trade_count,
        "realized_count": row.realized_count,
        "open_count": row.open_count,
        "total_pnl": serialize_decimal(row.total_pnl),
        "avg_ror": serialize_decimal(row.avg_ror),
        "win_rate": serialize_decimal(row.win_rate),
    }


def serialize_period_performance(row: PeriodPerformance) -> Dict[str, Any]:
    return {
        "period": row.period,
        "trade_count": row.trade_count,
        "winning_trades": row.winning_trades,
        "losing_trades": row.losing_trades,
        "total_pnl": serialize_decimal(row.total_pnl),
        "total_fees": serialize_decimal(row.total_fees),
        "win_rate": serialize_decimal(row.win_rate),
        "average_days_held": serialize_decimal(row.average_days_held),
    }


def serialize_ticker_performance(row: TickerPerformance) -> Dict[str, Any]:
    return {
        "symbol": row.symbol,
        "trade_count": row.trade_count,
        "total_pnl": serialize_decimal(row.total_pnl),
        "total_collateral": serialize_decimal(row.total_collateral),
        "return_on_risk": serialize_decimal(row.return_on_risk),
        "annualized_return_on_risk": serialize_decimal(row.annualized_return_on_risk),
    }


def serialize_summary(summary: PortfolioSummary, *, portfolio_id: Optional[str] = None) -> Dict[str, Any]:
    """Serialize a portfolio summary for JSON output."""
    return {
        "portfolio_id": portfolio_id,
        "open_count": summary.open_count,
        "realized_count": summary.realized_count,
        "realized_pnl": serialize_decimal(summary.realized_pnl),
        "unrealized_pnl": serialize_decimal(summary.unrealized_pnl),
        "total_fees": serialize_decimal(summary.total_fees),
        "win_rate": serialize_decimal(summary.win_rate),
        "average_days_held": serialize_decimal(summary.average_days_held),
        "return_on_risk": serialize_decimal(summary.return_on_risk),
        "average_return_on_risk": serialize_decimal(summary.average_return_on_risk),
        "strategies": [serialize_strategy_performance(row) for row in summary.strategies],
        "monthly": [serialize_period_performance(row) for row in summary.monthly],
        "yearly": [serialize_period_performance(row) for row in summary.yearly],
        "tickers": [serialize_ticker_performance(row) for row in summary.tickers],
        "warnings": [serialize_warning(warning) for warning in summary.warnings],
    }
