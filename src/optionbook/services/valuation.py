"""
Per-position valuation: break-even, P&L, collateral and return on risk.

Every function here is pure: it reads the supplied position and returns a
value without consulting storage, the clock (unless ``as_of`` is omitted),
or market data. Inputs are not validated; see :mod:`.lifecycle` for that.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from ..core.dates import days_held as _days_held
from ..core.dates import days_to_expiry as _days_to_expiry
from ..core.models import (
    CONTRACT_MULTIPLIER,
    Direction,
    OpenPosition,
    OptionKind,
    PositionStatus,
    RealizedPosition,
)

AnyPosition = Union[OpenPosition, RealizedPosition]

# Returned instead of raising when a ratio has a zero denominator.
UNDEFINED_RATIO = Decimal("NaN")

DAYS_PER_YEAR = Decimal("365")
PERCENT = Decimal("100")
ZERO = Decimal("0")


class Strategy(str, Enum):
    CASH_SECURED_PUT = "Cash-Secured Put"
    COVERED_CALL = "Covered Call"
    LONG_CALL = "Long Call"
    LONG_PUT = "Long Put"


def strategy_type(position: AnyPosition) -> Strategy:
    """Classify a single-leg position by direction and option kind."""
    if position.direction is Direction.SELL:
        if position.option_kind is OptionKind.PUT:
            return Strategy.CASH_SECURED_PUT
        return Strategy.COVERED_CALL
    if position.option_kind is OptionKind.CALL:
        return Strategy.LONG_CALL
    return Strategy.LONG_PUT


def is_undefined(value: Optional[Decimal]) -> bool:
    """True for ``None`` or any non-finite Decimal."""
    return value is None or not value.is_finite()


def break_even(strike: Decimal, premium: Decimal, kind: OptionKind) -> Decimal:
    """Underlying price at which the payoff is zero before fees."""
    if kind is OptionKind.CALL:
        return strike + premium
    return strike - premium


def _notional(per_share: Decimal, contracts: int) -> Decimal:
    return per_share * Decimal(contracts) * CONTRACT_MULTIPLIER


def intrinsic_value(strike: Decimal, underlying_price: Decimal, kind: OptionKind) -> Decimal:
    """In-the-money amount per share at ``underlying_price``."""
    if kind is OptionKind.CALL:
        return max(underlying_price - strike, ZERO)
    return max(strike - underlying_price, ZERO)


def open_profit_loss(position: AnyPosition) -> Decimal:
    """
    Premium-only estimate for a position that has not been realized.

    Fees are charged at close, so this figure is gross.
    """
    gross = _notional(position.premium, position.contracts)
    return gross if position.direction is Direction.SELL else -gross


def close_profit_loss(position: AnyPosition, underlying_price: Decimal) -> Decimal:
    """
    Realized P&L of an ordinary close with the underlying at ``underlying_price``.

    The option is settled at its intrinsic value; a seller keeps the premium less
    intrinsic value, a buyer receives intrinsic value less the premium paid.
    """
    intrinsic = intrinsic_value(position.strike, underlying_price, position.option_kind)
    if position.direction is Direction.SELL:
        per_share = position.premium - intrinsic
    else:
        per_share = intrinsic - position.premium
    return _notional(per_share, position.contracts) - position.fees


def roll_profit_loss(position: AnyPosition, exit_premium: Decimal) -> Decimal:
    """Realized P&L of a leg closed by paying/receiving ``exit_premium`` during a roll."""
    if position.direction is Direction.SELL:
        per_share = position.premium - exit_premium
    else:
        per_share = exit_premium - position.premium
    return _notional(per_share, position.contracts) - position.fees


def profit_loss(position: AnyPosition, reference_price: Optional[Decimal] = None) -> Decimal:
    """
    P&L of ``position``.

    ``reference_price`` defaults to the stored exit price. A rolled leg treats it as
    the exit premium; every other realized status treats it as the underlying price
    at close. An open position with no reference price gets the premium-only
    estimate; supplying one values a hypothetical close at that underlying price.
    """
    reference = reference_price if reference_price is not None else position.exit_price
    if reference is None:
        return open_profit_loss(position)
    if position.status == PositionStatus.ROLLED:
        return roll_profit_loss(position, reference)
    return close_profit_loss(position, reference)


def collateral(position: AnyPosition) -> Decimal:
    """
    Capital the position is considered to lock up.

    Cash-secured puts reserve the full strike. Covered calls use the manual
    override when one is set, else the same strike-based figure (an
    approximation of the shares' value, not a margin model). Long options
    risk only the premium paid.
    """
    strategy = strategy_type(position)
    if strategy is Strategy.CASH_SECURED_PUT:
        return _notional(position.strike, position.contracts)
    if strategy is Strategy.COVERED_CALL:
        override = position.collateral_override
        if override is not None and override > 0:
            return override
        return _notional(position.strike, position.contracts)
    return _notional(position.premium, position.contracts)


def ratio_percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    """``numerator / denominator * 100`` or :data:`UNDEFINED_RATIO` for a zero denominator."""
    if denominator == 0:
        return UNDEFINED_RATIO
    return numerator / denominator * PERCENT


def return_on_risk(position: AnyPosition) -> Decimal:
    """P&L as a percentage of collateral."""
    return ratio_percent(profit_loss(position), collateral(position))


def annualized_return_on_risk(
    position: AnyPosition, *, as_of: Optional[date | datetime] = None
) -> Optional[Decimal]:
    """
    Premium-based annualized return for a position that has left Open.

    The denominator is the premium notional, not collateral, so this figure is not
    an annualized :func:`return_on_risk`. ``None`` when the position is open, was
    held zero days, or has no premium.
    """
    if position.status == PositionStatus.OPEN:
        return None
    held = _days_held(position.open_date, position.close_date, as_of=as_of)
    premium_total = _notional(position.premium, position.contracts)
    if held <= 0 or premium_total <= 0:
        return None
    pnl = profit_loss(position)
    return pnl / premium_total * (DAYS_PER_YEAR / Decimal(held)) * PERCENT


def position_days_held(position: AnyPosition, *, as_of: Optional[date | datetime] = None) -> int:
    return _days_held(position.open_date, position.close_date, as_of=as_of)


def position_days_to_expiry(
    position: AnyPosition, *, as_of: Optional[date | datetime] = None
) -> int:
    return _days_to_expiry(position.expiry_date, as_of=as_of)


@dataclass(frozen=True)
class PositionValuation:
    """Derived figures for one position at a point in time."""

    break_even: Decimal
    days_to_expiry: int
    days_held: int
    profit_loss: Decimal
    collateral: Decimal
    return_on_risk: Decimal
    annualized_return_on_risk: Optional[Decimal]


def value_position(
    position: AnyPosition, as_of: Optional[date | datetime] = None
) -> PositionValuation:
    """Compute every derived figure for ``position`` as of ``as_of`` (default today)."""
    pnl = profit_loss(position)
    locked = collateral(position)
    return PositionValuation(
        break_even=break_even(position.strike, position.premium, position.option_kind),
        days_to_expiry=position_days_to_expiry(position, as_of=as_of),
        days_held=position_days_held(position, as_of=as_of),
        profit_loss=pnl,
        collateral=locked,
        return_on_risk=ratio_percent(pnl, locked),
        annualized_return_on_risk=annualized_return_on_risk(position, as_of=as_of),
    )


def with_derived_fields(
    position: AnyPosition, *, as_of: Optional[date | datetime] = None
) -> AnyPosition:
    """Return a copy of ``position`` with break-even, P&L and annualized RoR refreshed."""
    return position.model_copy(
        update={
            "break_even": break_even(position.strike, position.premium, position.option_kind),
            "profit_loss": profit_loss(position),
            "annualized_ror": annualized_return_on_risk(position, as_of=as_of),
        }
    )
