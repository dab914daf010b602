"""
Core data models for option position tracking.

Positions are modelled as a tagged union keyed on ``status``: an
:class:`OpenPosition` never carries exit data, while a :class:`RealizedPosition`
always does. Models are frozen; lifecycle changes produce new instances.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

CONTRACT_MULTIPLIER = Decimal("100")


class OptionKind(str, Enum):
    CALL = "Call"
    PUT = "Put"


class Direction(str, Enum):
    BUY = "Buy"
    SELL = "Sell"


class PositionStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    EXPIRED = "Expired"
    ASSIGNED = "Assigned"
    ROLLED = "Rolled"


class ChainStatus(str, Enum):
    ACTIVE = "Active"
    CLOSED = "Closed"


# Terminal and realized; the leg's P&L is final.
REALIZED_STATUSES = frozenset(
    {PositionStatus.CLOSED, PositionStatus.EXPIRED, PositionStatus.ASSIGNED}
)
TERMINAL_STATUSES = REALIZED_STATUSES | {PositionStatus.ROLLED}


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid4().hex


class _PositionBase(BaseModel):
    """Fields shared by every position variant."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=new_id, description="Unique position id")
    portfolio_id: str = Field(..., description="Owning portfolio id")
    symbol: str = Field(..., description="Underlying symbol (e.g., 'AAPL')")
    option_kind: OptionKind = Field(..., description="Call or Put")
    direction: Direction = Field(..., description="Buy or Sell")
    strike: Decimal = Field(..., description="Strike price")
    premium: Decimal = Field(..., description="Premium per share")
    contracts: int = Field(..., description="Number of contracts")
    open_date: date = Field(..., description="Trade open date")
    expiry_date: date = Field(..., description="Option expiry date")
    fees: Decimal = Field(default=Decimal("0"), description="Total fees charged")
    chain_id: Optional[str] = Field(default=None, description="Roll chain id")
    collateral_override: Optional[Decimal] = Field(
        default=None, description="Manually entered collateral"
    )
    break_even: Optional[Decimal] = None
    profit_loss: Optional[Decimal] = None
    annualized_ror: Optional[Decimal] = None

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES  # type: ignore[attr-defined]

    @property
    def is_realized(self) -> bool:
        """Whether the position reached a final realized status (not Rolled)."""
        return self.status in REALIZED_STATUSES  # type: ignore[attr-defined]

    @property
    def position_spec(self) -> str:
        """Human-readable contract description."""
        strike = self.strike.normalize()
        return f"{self.symbol} ${strike:f} {self.option_kind.value} {self.expiry_date.isoformat()}"


class OpenPosition(_PositionBase):
    """A position that is still live; exit fields do not exist."""

    status: Literal[PositionStatus.OPEN] = PositionStatus.OPEN

    @property
    def exit_price(self) -> None:
        return None

    @property
    def close_date(self) -> None:
        return None


class RealizedPosition(_PositionBase):
    """A position in a terminal status; exit reference and close date are mandatory."""

    status: Literal[
        PositionStatus.CLOSED,
        PositionStatus.EXPIRED,
        PositionStatus.ASSIGNED,
        PositionStatus.ROLLED,
    ]
    exit_price: Decimal = Field(
        ...,
        description="Underlying price at close, or the exit premium for a rolled leg",
    )
    close_date: date = Field(..., description="Date the position left Open")


Position = Annotated[Union[OpenPosition, RealizedPosition], Field(discriminator="status")]

_POSITION_ADAPTER: TypeAdapter[Any] = TypeAdapter(Position)


def parse_position(data: Mapping[str, Any]) -> Union[OpenPosition, RealizedPosition]:
    """Build the correct position variant from a mapping (status selects the type)."""
    payload = {key: value for key, value in data.items() if value is not None}
    payload["status"] = PositionStatus(payload.get("status") or PositionStatus.OPEN)
    return _POSITION_ADAPTER.validate_python(payload)


class Chain(BaseModel):
    """A sequence of positions produced by rolling the same exposure forward."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    portfolio_id: str
    symbol: str
    option_kind: OptionKind
    original_strike: Decimal
    original_open_date: date
    status: ChainStatus = ChainStatus.ACTIVE

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return v.strip().upper()


class LegTerms(BaseModel):
    """Contract terms of the successor leg opened by a roll."""

    model_config = ConfigDict(frozen=True)

    strike: Decimal
    premium: Decimal
    expiry_date: date
    fees: Optional[Decimal] = None


class TransitionFields(BaseModel):
    """Exit data supplied when moving a position to another status."""

    model_config = ConfigDict(frozen=True)

    exit_price: Optional[Decimal] = None
    close_date: Optional[date] = None
    fees: Optional[Decimal] = None
