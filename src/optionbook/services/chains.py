"""
Chain-level aggregation over roll chains.

A chain has no explicit next/previous links: membership is the ``chain_id``
foreign key and order is the open date. :func:`index_chains` builds the ordered
view once so callers don't re-scan the position list per chain.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from ..core.models import PositionStatus
from .valuation import AnyPosition, collateral, profit_loss, ratio_percent


@dataclass(frozen=True)
class ChainValuation:
    """Aggregate figures for every leg of one chain."""

    profit_loss: Decimal
    collateral: Decimal
    return_on_risk: Decimal


def _leg_sort_key(position: AnyPosition):
    return (position.open_date, position.close_date is None, position.id)


def index_chains(positions: Iterable[AnyPosition]) -> Dict[str, List[AnyPosition]]:
    """Group chained positions by ``chain_id``, each list oldest leg first."""
    grouped: Dict[str, List[AnyPosition]] = defaultdict(list)
    for position in positions:
        if position.chain_id:
            grouped[position.chain_id].append(position)
    for legs in grouped.values():
        legs.sort(key=_leg_sort_key)
    return dict(grouped)


def chain_members(
    chain_id: str,
    positions: Iterable[AnyPosition],
    *,
    newest_first: bool = True,
) -> List[AnyPosition]:
    """Return the legs of ``chain_id``; newest first by default for display."""
    legs = sorted(
        (position for position in positions if position.chain_id == chain_id),
        key=_leg_sort_key,
    )
    if newest_first:
        legs.reverse()
    return legs


def open_legs(legs: Iterable[AnyPosition]) -> List[AnyPosition]:
    return [leg for leg in legs if leg.status == PositionStatus.OPEN]


def current_leg(chain_id: str, positions: Iterable[AnyPosition]) -> Optional[AnyPosition]:
    """
    The chain's ``Open`` leg, if exactly one exists.

    ``None`` for a finished chain as well as for the inconsistent cases (no open
    leg on an active chain, or several); see :mod:`.consistency` to tell them apart.
    """
    candidates = open_legs(chain_members(chain_id, positions))
    if len(candidates) != 1:
        return None
    return candidates[0]


def chain_profit_loss(chain_id: str, positions: Iterable[AnyPosition]) -> Decimal:
    """Sum of every leg's P&L: realized rolled legs plus the open leg's estimate."""
    return sum(
        (profit_loss(p) for p in positions if p.chain_id == chain_id),
        Decimal("0"),
    )


def chain_collateral(chain_id: str, positions: Iterable[AnyPosition]) -> Decimal:
    """
    Sum of every leg's collateral.

    Each leg locked capital for its own holding period, so the figures are added
    rather than taking the peak concurrent exposure.
    """
    return sum(
        (collateral(p) for p in positions if p.chain_id == chain_id),
        Decimal("0"),
    )


def chain_return_on_risk(chain_id: str, positions: Iterable[AnyPosition]) -> Decimal:
    legs = [p for p in positions if p.chain_id == chain_id]
    return ratio_percent(chain_profit_loss(chain_id, legs), chain_collateral(chain_id, legs))


def value_chain(chain_id: str, positions: Iterable[AnyPosition]) -> ChainValuation:
    """Compute P&L, collateral and return on risk for one chain."""
    legs = [p for p in positions if p.chain_id == chain_id]
    pnl = chain_profit_loss(chain_id, legs)
    locked = chain_collateral(chain_id, legs)
    return ChainValuation(
        profit_loss=pnl,
        collateral=locked,
        return_on_risk=ratio_percent(pnl, locked),
    )
