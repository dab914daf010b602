"""
Position status transitions and the field invariants each status enforces.

``Open`` is the only status a position can leave. From there it moves to one of
the realized statuses (``Closed``, ``Expired``, ``Assigned``) or to ``Rolled``,
which is reached exclusively through :func:`optionbook.services.roll.roll_position`.
A realized position may have its exit data corrected in place; a rolled leg may
not be edited at all.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Union

from ..core.dates import is_expired, to_eastern_date
from ..core.errors import PositionValidationError
from ..core.models import (
    REALIZED_STATUSES,
    Chain,
    ChainStatus,
    OpenPosition,
    PositionStatus,
    RealizedPosition,
    TransitionFields,
)
from .valuation import AnyPosition, with_derived_fields

logger = logging.getLogger(__name__)

_EXIT_FIELDS = {"status", "exit_price", "close_date"}
_ROLLED_IMMUTABLE = (
    "Rolled positions cannot be edited; delete the chain and re-enter its legs."
)


def term_errors(
    *,
    strike: Optional[Decimal],
    premium: Optional[Decimal],
    contracts: Optional[int],
    open_date: Optional[date],
    expiry_date: Optional[date],
    fees: Optional[Decimal] = None,
) -> Dict[str, str]:
    """Return field -> message for every violated contract-term invariant."""
    errors: Dict[str, str] = {}
    if strike is None or strike <= 0:
        errors["strike"] = "Strike price must be greater than 0"
    if premium is None or premium <= 0:
        errors["premium"] = "Premium must be greater than 0"
    if contracts is None or contracts <= 0:
        errors["contracts"] = "Number of contracts must be greater than 0"
    if expiry_date is None:
        errors["expiry_date"] = "Expiry date is required"
    elif open_date is not None and expiry_date < open_date:
        errors["expiry_date"] = "Expiry date cannot be before open date"
    if fees is not None and fees < 0:
        errors["fees"] = "Fees cannot be negative"
    return errors


def validate_terms(position: AnyPosition) -> None:
    """Raise :class:`PositionValidationError` when the contract terms are invalid."""
    errors = term_errors(
        strike=position.strike,
        premium=position.premium,
        contracts=position.contracts,
        open_date=position.open_date,
        expiry_date=position.expiry_date,
        fees=position.fees,
    )
    if errors:
        raise PositionValidationError(errors)


def _exit_errors(
    position: AnyPosition,
    target: PositionStatus,
    exit_price: Optional[Decimal],
    close_date: Optional[date],
) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    label = "rolling" if target == PositionStatus.ROLLED else "closing"
    if exit_price is None or exit_price <= 0:
        errors["exit_price"] = f"Exit price is required when {label} a trade"
    if close_date is None:
        errors["close_date"] = f"Close date is required when {label} a trade"
    elif close_date < position.open_date:
        errors["close_date"] = "Close date cannot be before open date"
    return errors


def validate_transition(
    position: AnyPosition,
    target_status: Union[PositionStatus, str],
    fields: Optional[TransitionFields] = None,
) -> None:
    """
    Check that ``position`` may move to ``target_status`` with ``fields``.

    Raises :class:`PositionValidationError` listing every problem found. Exit
    fields missing from ``fields`` fall back to the values already stored, so a
    realized position can be re-saved with only the field being corrected.
    """
    target = PositionStatus(target_status)
    fields = fields or TransitionFields()
    current = PositionStatus(position.status)

    if current == PositionStatus.ROLLED:
        raise PositionValidationError({"status": _ROLLED_IMMUTABLE})

    errors = term_errors(
        strike=position.strike,
        premium=position.premium,
        contracts=position.contracts,
        open_date=position.open_date,
        expiry_date=position.expiry_date,
        fees=fields.fees if fields.fees is not None else position.fees,
    )

    if current in REALIZED_STATUSES and target != current:
        errors["status"] = f"A {current.value} position cannot move to {target.value}"
    elif target != PositionStatus.OPEN:
        exit_price = fields.exit_price if fields.exit_price is not None else position.exit_price
        close_date = fields.close_date if fields.close_date is not None else position.close_date
        errors.update(_exit_errors(position, target, exit_price, close_date))

    if errors:
        raise PositionValidationError(errors)


def _base_fields(position: AnyPosition, fees: Optional[Decimal]) -> Dict[str, object]:
    data = position.model_dump(exclude=_EXIT_FIELDS)
    if fees is not None:
        data["fees"] = fees
    return data


def realize(
    position: AnyPosition,
    status: PositionStatus,
    *,
    exit_price: Decimal,
    close_date: date,
    fees: Optional[Decimal] = None,
    chain_id: Optional[str] = None,
) -> RealizedPosition:
    """Build the terminal variant of ``position`` with derived figures refreshed."""
    data = _base_fields(position, fees)
    if chain_id is not None:
        data["chain_id"] = chain_id
    realized = RealizedPosition(
        **data, status=status, exit_price=exit_price, close_date=close_date
    )
    return with_derived_fields(realized)  # type: ignore[return-value]


def reopen(position: AnyPosition, *, fees: Optional[Decimal] = None) -> OpenPosition:
    """Return ``position`` as ``Open`` with any exit data dropped."""
    data = _base_fields(position, fees)
    data["annualized_ror"] = None
    return with_derived_fields(OpenPosition(**data))  # type: ignore[return-value]


def apply_transition(
    position: AnyPosition,
    target_status: Union[PositionStatus, str],
    fields: Optional[TransitionFields] = None,
) -> AnyPosition:
    """
    Validate and perform a status change, returning the new position record.

    Moving to ``Rolled`` is rejected here; a roll also opens a successor leg and
    must go through :func:`optionbook.services.roll.roll_position`.
    """
    target = PositionStatus(target_status)
    fields = fields or TransitionFields()
    if target == PositionStatus.ROLLED:
        raise PositionValidationError(
            {"status": "Use the roll operation to move a position to Rolled"}
        )
    validate_transition(position, target, fields)

    if target == PositionStatus.OPEN:
        updated: AnyPosition = reopen(position, fees=fields.fees)
    else:
        updated = realize(
            position,
            target,
            exit_price=fields.exit_price if fields.exit_price is not None else position.exit_price,
            close_date=fields.close_date if fields.close_date is not None else position.close_date,
            fees=fields.fees,
        )
    logger.info(
        "Position %s moved %s -> %s (P&L %s)",
        position.id,
        PositionStatus(position.status).value,
        target.value,
        updated.profit_loss,
    )
    return updated


def recompute_chain_status(chain: Chain, positions: Iterable[AnyPosition]) -> Chain:
    """``Active`` while any member is ``Open``, otherwise ``Closed``."""
    has_open = any(
        p.chain_id == chain.id and p.status == PositionStatus.OPEN for p in positions
    )
    status = ChainStatus.ACTIVE if has_open else ChainStatus.CLOSED
    if status == chain.status:
        return chain
    return chain.model_copy(update={"status": status})


def positions_due_for_expiry(
    positions: Iterable[AnyPosition], *, now: Optional[datetime] = None
) -> List[AnyPosition]:
    """Open positions whose expiry has passed the market close."""
    return [
        p
        for p in positions
        if p.status == PositionStatus.OPEN and is_expired(p.expiry_date, now=now)
    ]


def expire_position(
    position: AnyPosition,
    underlying_price: Decimal,
    *,
    now: Optional[datetime] = None,
    fees: Optional[Decimal] = None,
) -> AnyPosition:
    """Move an expired open position to ``Expired``, closing it on its expiry date."""
    if not is_expired(position.expiry_date, now=now):
        raise PositionValidationError(
            {"expiry_date": f"Position has not expired as of {to_eastern_date(now).isoformat()}"}
        )
    return apply_transition(
        position,
        PositionStatus.EXPIRED,
        TransitionFields(
            exit_price=underlying_price, close_date=position.expiry_date, fees=fees
        ),
    )
