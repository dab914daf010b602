"""
Rolling a position: realize the current leg and open its successor in one chain.

:func:`roll_position` is pure. It returns the records to persist in the order
they must be written: the chain (when newly created), the realized source leg,
then the successor leg. The source leg must be durably written before the
successor; a crash in between leaves an ``Active`` chain with no ``Open`` leg,
which :mod:`.consistency` reports as needing repair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Union

from ..core.dates import to_eastern_date
from ..core.errors import ChainNotFoundError, PositionValidationError
from ..core.models import (
    Chain,
    ChainStatus,
    LegTerms,
    OpenPosition,
    PositionStatus,
    RealizedPosition,
    TransitionFields,
)
from .lifecycle import realize, validate_transition
from .valuation import AnyPosition, with_derived_fields

logger = logging.getLogger(__name__)

DEFAULT_FEE_PER_CONTRACT = Decimal("0.66")


def default_fees(contracts: int) -> Decimal:
    """Broker fee assumed for a leg when none is entered."""
    return DEFAULT_FEE_PER_CONTRACT * Decimal(contracts)


@dataclass(frozen=True)
class RollResult:
    """Records produced by a roll."""

    realized_source: RealizedPosition
    new_leg: OpenPosition
    chain: Chain
    chain_created: bool

    def ordered_records(self) -> List[Union[Chain, RealizedPosition, OpenPosition]]:
        """Records in the order they must be persisted."""
        records: List[Union[Chain, RealizedPosition, OpenPosition]] = []
        if self.chain_created:
            records.append(self.chain)
        records.append(self.realized_source)
        records.append(self.new_leg)
        return records


def new_chain_for(source: AnyPosition) -> Chain:
    """Seed a chain from the first position being rolled."""
    return Chain(
        portfolio_id=source.portfolio_id,
        symbol=source.symbol,
        option_kind=source.option_kind,
        original_strike=source.strike,
        original_open_date=source.open_date,
        status=ChainStatus.ACTIVE,
    )


def leg_term_errors(source: AnyPosition, terms: LegTerms, roll_date: date) -> Dict[str, str]:
    """Problems with the successor leg's terms, keyed by ``new_*`` field names."""
    errors: Dict[str, str] = {}
    if terms.strike <= 0:
        errors["new_strike"] = "New strike price must be greater than 0"
    if terms.premium <= 0:
        errors["new_premium"] = "New premium must be greater than 0"
    if terms.fees is not None and terms.fees < 0:
        errors["new_fees"] = "New fees cannot be negative"
    if terms.expiry_date < roll_date:
        errors["new_expiry_date"] = "New expiry date cannot be before the roll date"
    elif terms.strike == source.strike and terms.expiry_date == source.expiry_date:
        errors["new_expiry_date"] = "A roll must change the strike or the expiry"
    return errors


def _resolve_chain(source: AnyPosition, chain: Optional[Chain]) -> tuple[Chain, bool]:
    if not source.chain_id:
        if chain is not None:
            raise PositionValidationError(
                {"chain_id": "Position is not part of a chain; a new chain will be created"}
            )
        return new_chain_for(source), True
    if chain is None:
        raise ChainNotFoundError(source.chain_id)
    if chain.id != source.chain_id:
        raise PositionValidationError(
            {"chain_id": f"Position belongs to chain {source.chain_id}, not {chain.id}"}
        )
    if chain.status != ChainStatus.ACTIVE:
        chain = chain.model_copy(update={"status": ChainStatus.ACTIVE})
    return chain, False


def roll_position(
    source: AnyPosition,
    exit_premium: Decimal,
    new_leg_terms: LegTerms,
    *,
    chain: Optional[Chain] = None,
    now: Optional[date | datetime] = None,
) -> RollResult:
    """
    Roll ``source`` forward into a new leg described by ``new_leg_terms``.

    ``exit_premium`` is the per-share price paid (short) or received (long) to
    close the source leg. When the source already belongs to a chain, that chain
    record must be passed as ``chain``; otherwise a new chain is created.
    """
    roll_date = to_eastern_date(now)

    errors: Dict[str, str] = {}
    try:
        validate_transition(
            source,
            PositionStatus.ROLLED,
            TransitionFields(exit_price=exit_premium, close_date=roll_date),
        )
    except PositionValidationError as exc:
        errors.update(exc.errors)
    errors.update(leg_term_errors(source, new_leg_terms, roll_date))
    if errors:
        raise PositionValidationError(errors)

    resolved, created = _resolve_chain(source, chain)

    realized = realize(
        source,
        PositionStatus.ROLLED,
        exit_price=exit_premium,
        close_date=roll_date,
        chain_id=resolved.id,
    )

    fees = new_leg_terms.fees
    successor = OpenPosition(
        portfolio_id=source.portfolio_id,
        symbol=source.symbol,
        option_kind=source.option_kind,
        direction=source.direction,
        strike=new_leg_terms.strike,
        premium=new_leg_terms.premium,
        contracts=source.contracts,
        open_date=roll_date,
        expiry_date=new_leg_terms.expiry_date,
        fees=fees if fees is not None else default_fees(source.contracts),
        chain_id=resolved.id,
        collateral_override=source.collateral_override,
    )
    successor = with_derived_fields(successor)  # type: ignore[assignment]

    logger.info(
        "Rolled %s into %s on chain %s (leg P&L %s)",
        source.position_spec,
        successor.position_spec,
        resolved.id,
        realized.profit_loss,
    )
    return RollResult(
        realized_source=realized,
        new_leg=successor,  # type: ignore[arg-type]
        chain=resolved,
        chain_created=created,
    )
