"""Core data models, calendar helpers, and exceptions."""

from .errors import ChainNotFoundError, PositionNotFoundError, PositionValidationError
from .models import (
    Chain,
    ChainStatus,
    Direction,
    LegTerms,
    OpenPosition,
    OptionKind,
    Position,
    PositionStatus,
    RealizedPosition,
    TransitionFields,
    parse_position,
)

__all__ = [
    "Chain",
    "ChainNotFoundError",
    "ChainStatus",
    "Direction",
    "LegTerms",
    "OpenPosition",
    "OptionKind",
    "Position",
    "PositionNotFoundError",
    "PositionStatus",
    "PositionValidationError",
    "RealizedPosition",
    "TransitionFields",
    "parse_position",
]
