"""
Optionbook - options position lifecycle and P&L tracking.

Tracks single-leg option positions, links rolled legs into chains, and derives
break-even, P&L, collateral and return on risk from the raw trade inputs.
"""

__version__ = "0.1.0"

from .core.errors import ChainNotFoundError, PositionNotFoundError, PositionValidationError
from .core.models import (
    Chain,
    ChainStatus,
    Direction,
    LegTerms,
    OpenPosition,
    OptionKind,
    PositionStatus,
    RealizedPosition,
    TransitionFields,
    parse_position,
)
from .services.chains import value_chain
from .services.consistency import InconsistentChainState
from .services.lifecycle import validate_transition
from .services.portfolio import unrealized_portfolio_pnl
from .services.roll import RollResult, roll_position
from .services.valuation import UNDEFINED_RATIO, value_position

__all__ = [
    "Chain",
    "ChainNotFoundError",
    "ChainStatus",
    "Direction",
    "InconsistentChainState",
    "LegTerms",
    "OpenPosition",
    "OptionKind",
    "PositionNotFoundError",
    "PositionStatus",
    "PositionValidationError",
    "RealizedPosition",
    "RollResult",
    "TransitionFields",
    "UNDEFINED_RATIO",
    "parse_position",
    "roll_position",
    "unrealized_portfolio_pnl",
    "validate_transition",
    "value_chain",
    "value_position",
]
