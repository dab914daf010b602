"""
Repository-backed trade workflows shared by the CLI and web layers.

The pure engine in :mod:`.valuation`, :mod:`.lifecycle` and :mod:`.roll` never
touches storage. These helpers load a consistent snapshot, call the engine, and
write the results back in the order the engine requires.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional, Union

from ..core.models import (
    REALIZED_STATUSES,
    Chain,
    LegTerms,
    OpenPosition,
    PositionStatus,
    TransitionFields,
)
from .consistency import InconsistentChainState, find_chain_inconsistencies
from .lifecycle import (
    apply_transition,
    expire_position,
    positions_due_for_expiry,
    validate_terms,
)
from .portfolio import PortfolioSummary, summarize_portfolio
from .quotes import QuoteProvider
from .roll import RollResult, default_fees, roll_position
from .valuation import AnyPosition, with_derived_fields

if TYPE_CHECKING:
    from ..persistence.repository import SQLiteRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Positions and chains read together so aggregates see one consistent state."""

    positions: List[AnyPosition]
    chains: List[Chain]


def load_snapshot(
    repository: "SQLiteRepository", portfolio_id: Optional[str] = None
) -> PortfolioSnapshot:
    return PortfolioSnapshot(
        positions=list(repository.list_positions(portfolio_id=portfolio_id)),
        chains=repository.list_chains(portfolio_id=portfolio_id),
    )


def open_position(repository: "SQLiteRepository", position: OpenPosition) -> OpenPosition:
    """Validate and store a newly opened position."""
    validate_terms(position)
    stored = with_derived_fields(position)
    repository.add_position(stored)
    logger.info("Opened %s (%s)", stored.position_spec, stored.id)
    return stored  # type: ignore[return-value]


def _fill_default_fees(
    position: AnyPosition,
    target_status: Union[PositionStatus, str],
    fields: Optional[TransitionFields],
) -> TransitionFields:
    """Charge the per-contract default fee when a position with no fees is realized."""
    fields = fields or TransitionFields()
    if (
        PositionStatus(target_status) in REALIZED_STATUSES
        and fields.fees is None
        and position.fees == 0
    ):
        return fields.model_copy(update={"fees": default_fees(position.contracts)})
    return fields


def transition_position(
    repository: "SQLiteRepository",
    position_id: str,
    target_status: Union[PositionStatus, str],
    fields: Optional[TransitionFields] = None,
) -> AnyPosition:
    """
    Move a stored position to ``target_status`` and refresh its chain's status.

    Realizing a position that has no fees recorded charges the default fee.
    """
    stored = repository.require_position(position_id)
    updated = apply_transition(
        stored, target_status, _fill_default_fees(stored, target_status, fields)
    )
    repository.save_transition(updated)
    return updated


def roll_stored_position(
    repository: "SQLiteRepository",
    position_id: str,
    exit_premium: Decimal,
    new_leg_terms: LegTerms,
    *,
    now: Optional[Union[date, datetime]] = None,
) -> RollResult:
    """Roll a stored position and persist the chain, realized leg and successor."""
    source = repository.require_position(position_id)
    chain = repository.require_chain(source.chain_id) if source.chain_id else None
    result = roll_position(source, exit_premium, new_leg_terms, chain=chain, now=now)
    return repository.save_roll(result)


def expire_due_positions(
    repository: "SQLiteRepository",
    quotes: QuoteProvider,
    *,
    portfolio_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[AnyPosition]:
    """
    Move every open position past its expiry to ``Expired``.

    The underlying's current quote is recorded as the exit reference and the
    default fee is charged as for any other realization. Positions whose symbol
    has no quote are left open and logged.
    """
    due = positions_due_for_expiry(
        repository.list_positions(portfolio_id=portfolio_id, status=PositionStatus.OPEN),
        now=now,
    )
    expired: List[AnyPosition] = []
    for position in due:
        price = quotes.get_price(position.symbol)
        if price is None:
            logger.warning("No quote for %s; leaving %s open", position.symbol, position.id)
            continue
        fees = _fill_default_fees(position, PositionStatus.EXPIRED, None).fees
        updated = expire_position(position, price, now=now, fees=fees)
        repository.save_transition(updated)
        expired.append(updated)
    return expired


def delete_chain(repository: "SQLiteRepository", chain_id: str) -> int:
    """Remove a chain with all of its legs; the only way to correct a rolled leg."""
    return repository.delete_chain(chain_id)


def portfolio_summary(
    repository: "SQLiteRepository",
    portfolio_id: Optional[str] = None,
    *,
    as_of: Optional[Union[date, datetime]] = None,
) -> PortfolioSummary:
    snapshot = load_snapshot(repository, portfolio_id)
    return summarize_portfolio(snapshot.positions, snapshot.chains, as_of=as_of)


def check_chains(
    repository: "SQLiteRepository", portfolio_id: Optional[str] = None
) -> List[InconsistentChainState]:
    """Report chains that need repair, e.g. after an interrupted roll."""
    snapshot = load_snapshot(repository, portfolio_id)
    return find_chain_inconsistencies(snapshot.chains, snapshot.positions)
