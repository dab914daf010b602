"""Position valuation, chain aggregation and lifecycle services."""

from .chains import (
    ChainValuation,
    chain_collateral,
    chain_members,
    chain_profit_loss,
    chain_return_on_risk,
    current_leg,
    index_chains,
    value_chain,
)
from .consistency import InconsistentChainState, find_chain_inconsistencies
from .lifecycle import (
    apply_transition,
    positions_due_for_expiry,
    recompute_chain_status,
    validate_transition,
)
from .portfolio import (
    PeriodPerformance,
    PortfolioSummary,
    TickerPerformance,
    period_performance,
    realized_portfolio_pnl,
    realized_positions,
    summarize_portfolio,
    ticker_performance,
    unrealized_portfolio_pnl,
)
from .quotes import QuoteProvider, StaticQuoteProvider
from .roll import DEFAULT_FEE_PER_CONTRACT, RollResult, roll_position
from .valuation import (
    UNDEFINED_RATIO,
    PositionValuation,
    annualized_return_on_risk,
    break_even,
    collateral,
    profit_loss,
    return_on_risk,
    strategy_type,
    value_position,
)

__all__ = [
    "ChainValuation",
    "DEFAULT_FEE_PER_CONTRACT",
    "InconsistentChainState",
    "PeriodPerformance",
    "PortfolioSummary",
    "PositionValuation",
    "QuoteProvider",
    "RollResult",
    "StaticQuoteProvider",
    "TickerPerformance",
    "UNDEFINED_RATIO",
    "annualized_return_on_risk",
    "apply_transition",
    "break_even",
    "chain_collateral",
    "chain_members",
    "chain_profit_loss",
    "chain_return_on_risk",
    "collateral",
    "current_leg",
    "find_chain_inconsistencies",
    "index_chains",
    "period_performance",
    "positions_due_for_expiry",
    "profit_loss",
    "realized_portfolio_pnl",
    "realized_positions",
    "recompute_chain_status",
    "return_on_risk",
    "roll_position",
    "strategy_type",
    "summarize_portfolio",
    "ticker_performance",
    "unrealized_portfolio_pnl",
    "validate_transition",
    "value_chain",
    "value_position",
]
