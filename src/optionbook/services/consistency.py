"""Detection of chains whose members contradict the chain's status.

The most important case is a partially completed roll: the source leg was
written as ``Rolled`` but the successor leg never landed, leaving an ``Active``
chain with no ``Open`` leg. These are reported, never repaired or raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Literal, Sequence

from ..core.models import Chain, ChainStatus
from .chains import index_chains, open_legs
from .valuation import AnyPosition

logger = logging.getLogger(__name__)

InconsistencyKind = Literal["missing_current_leg", "multiple_current_legs", "stale_status"]


@dataclass(frozen=True)
class InconsistentChainState:
    """Data-integrity warning for a single chain."""

    chain_id: str
    kind: InconsistencyKind
    open_leg_count: int
    message: str


def check_chain(chain: Chain, legs: Sequence[AnyPosition]) -> List[InconsistentChainState]:
    """Return the warnings for ``chain`` given its member ``legs``."""
    open_count = len(open_legs(legs))
    issues: List[InconsistentChainState] = []
    if chain.status == ChainStatus.ACTIVE and open_count == 0:
        issues.append(
            InconsistentChainState(
                chain_id=chain.id,
                kind="missing_current_leg",
                open_leg_count=0,
                message=(
                    f"Chain {chain.id} ({chain.symbol}) is Active but has no Open leg; "
                    "a roll may have been interrupted and needs repair."
                ),
            )
        )
    if open_count > 1:
        issues.append(
            InconsistentChainState(
                chain_id=chain.id,
                kind="multiple_current_legs",
                open_leg_count=open_count,
                message=f"Chain {chain.id} ({chain.symbol}) has {open_count} Open legs.",
            )
        )
    if chain.status == ChainStatus.CLOSED and open_count > 0:
        issues.append(
            InconsistentChainState(
                chain_id=chain.id,
                kind="stale_status",
                open_leg_count=open_count,
                message=f"Chain {chain.id} ({chain.symbol}) is Closed but still has an Open leg.",
            )
        )
    return issues


def find_chain_inconsistencies(
    chains: Iterable[Chain], positions: Iterable[AnyPosition]
) -> List[InconsistentChainState]:
    """Check every chain against a consistent snapshot of positions."""
    by_chain = index_chains(positions)
    warnings: List[InconsistentChainState] = []
    for chain in chains:
        for issue in check_chain(chain, by_chain.get(chain.id, [])):
            logger.warning(issue.message)
            warnings.append(issue)
    return warnings
