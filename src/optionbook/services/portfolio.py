"""
Portfolio-level P&L aggregation.

Realized and unrealized totals partition the position set with one shared rule:
a chain is *live* while at least one of its legs is ``Open``. Rolled legs of a
live chain roll up into that chain's unrealized figure; once the chain has no
open leg they move to the realized side. No position is counted on both sides.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Literal, Optional, Set

from ..core.models import Chain, PositionStatus
from .chains import index_chains
from .consistency import InconsistentChainState, find_chain_inconsistencies
from .valuation import (
    DAYS_PER_YEAR,
    PERCENT,
    UNDEFINED_RATIO,
    ZERO,
    AnyPosition,
    Strategy,
    collateral,
    position_days_held,
    profit_loss,
    ratio_percent,
    return_on_risk,
    strategy_type,
)

_CHAIN_RUNNING_STATUSES = frozenset({PositionStatus.ROLLED, PositionStatus.OPEN})


def live_chain_ids(positions: Iterable[AnyPosition]) -> Set[str]:
    """Chain ids that still have an ``Open`` leg."""
    return {
        p.chain_id for p in positions if p.chain_id and p.status == PositionStatus.OPEN
    }


def realized_positions(positions: Iterable[AnyPosition]) -> List[AnyPosition]:
    """
    Positions whose P&L is final.

    Every Closed/Expired/Assigned position, plus the Rolled legs of chains that no
    longer have an open leg. Rolled legs without a chain id are left out.
    """
    snapshot = list(positions)
    live = live_chain_ids(snapshot)
    realized: List[AnyPosition] = []
    for position in snapshot:
        if position.is_realized:
            realized.append(position)
        elif (
            position.status == PositionStatus.ROLLED
            and position.chain_id
            and position.chain_id not in live
        ):
            realized.append(position)
    return realized


def realized_portfolio_pnl(positions: Iterable[AnyPosition]) -> Decimal:
    return sum((profit_loss(p) for p in realized_positions(positions)), Decimal("0"))


def unrealized_portfolio_pnl(
    positions: Iterable[AnyPosition], chains: Optional[Iterable[Chain]] = None
) -> Decimal:
    """
    Total unrealized P&L across the portfolio.

    A standalone open position contributes its own estimate. An open leg of a chain
    contributes the chain's running total (every Rolled leg's realized P&L plus the
    open leg's estimate), counted once per chain even if the chain is corrupt and
    has several open legs. When ``chains`` is supplied, chains whose status
    disagrees with their legs are logged as data-integrity warnings.
    """
    snapshot = list(positions)
    if chains is not None:
        find_chain_inconsistencies(chains, snapshot)

    by_chain = index_chains(snapshot)
    counted: Set[str] = set()
    total = Decimal("0")
    for position in snapshot:
        if position.status != PositionStatus.OPEN:
            continue
        if not position.chain_id:
            total += profit_loss(position)
            continue
        if position.chain_id in counted:
            continue
        counted.add(position.chain_id)
        total += sum(
            (
                profit_loss(leg)
                for leg in by_chain[position.chain_id]
                if leg.status in _CHAIN_RUNNING_STATUSES
            ),
            Decimal("0"),
        )
    return total


def total_deployed_capital(positions: Iterable[AnyPosition]) -> Decimal:
    return sum((collateral(p) for p in positions), Decimal("0"))


def portfolio_return_on_risk(positions: Iterable[AnyPosition]) -> Decimal:
    """Capital-weighted RoR: realized P&L over realized collateral."""
    realized = realized_positions(positions)
    pnl = sum((profit_loss(p) for p in realized), Decimal("0"))
    return ratio_percent(pnl, total_deployed_capital(realized))


def average_return_on_risk(positions: Iterable[AnyPosition]) -> Decimal:
    """Unweighted mean of the realized positions' finite RoR values."""
    values = [r for r in (return_on_risk(p) for p in realized_positions(positions)) if r.is_finite()]
    if not values:
        return ZERO
    return sum(values, Decimal("0")) / Decimal(len(values))


def win_rate(positions: Iterable[AnyPosition]) -> Decimal:
    """Share of realized positions with a positive P&L, as a percentage."""
    realized = realized_positions(positions)
    if not realized:
        return ZERO
    winners = sum(1 for p in realized if profit_loss(p) > 0)
    return Decimal(winners) / Decimal(len(realized)) * Decimal("100")


@dataclass(frozen=True)
class StrategyPerformance:
    strategy: Strategy
    trade_count: int
    realized_count: int
    open_count: int
    total_pnl: Decimal
    avg_ror: Decimal
    win_rate: Decimal


def strategy_performance(positions: Iterable[AnyPosition]) -> List[StrategyPerformance]:
    """
    Per-strategy statistics, best average realized RoR first.

    P&L, RoR and win rate consider realized positions only; open positions are
    counted but do not move the figures.
    """
    snapshot = list(positions)
    realized_ids = {p.id for p in realized_positions(snapshot)}
    grouped: Dict[Strategy, List[AnyPosition]] = defaultdict(list)
    for position in snapshot:
        grouped[strategy_type(position)].append(position)

    results: List[StrategyPerformance] = []
    for strategy, bucket in grouped.items():
        realized = [p for p in bucket if p.id in realized_ids]
        rors = [r for r in (return_on_risk(p) for p in realized) if r.is_finite()]
        winners = sum(1 for p in realized if profit_loss(p) > 0)
        results.append(
            StrategyPerformance(
                strategy=strategy,
                trade_count=len(bucket),
                realized_count=len(realized),
                open_count=sum(1 for p in bucket if p.status == PositionStatus.OPEN),
                total_pnl=sum((profit_loss(p) for p in realized), Decimal("0")),
                avg_ror=(sum(rors, Decimal("0")) / Decimal(len(rors))) if rors else ZERO,
                win_rate=(
                    Decimal(winners) / Decimal(len(realized)) * Decimal("100")
                    if realized
                    else ZERO
                ),
            )
        )
    results.sort(key=lambda item: item.avg_ror, reverse=True)
    return results


PeriodGranularity = Literal["month", "year"]


@dataclass(frozen=True)
class PeriodPerformance:
    """Realized results for one calendar month (``YYYY-MM``) or year (``YYYY``)."""

    period: str
    trade_count: int
    winning_trades: int
    losing_trades: int
    total_pnl: Decimal
    total_fees: Decimal
    win_rate: Decimal
    average_days_held: Decimal


def _period_key(closed_on: date, granularity: PeriodGranularity) -> str:
    if granularity == "month":
        return f"{closed_on.year:04d}-{closed_on.month:02d}"
    return f"{closed_on.year:04d}"


def period_performance(
    positions: Iterable[AnyPosition], granularity: PeriodGranularity = "month"
) -> List[PeriodPerformance]:
    """
    Realized positions grouped by the month or year of their close date, latest first.

    Only the realized set is considered, so Rolled legs of live chains stay out
    until their chain finishes. Break-even trades count as neither wins nor losses.
    """
    if granularity not in ("month", "year"):
        raise ValueError(f"Unknown period granularity: {granularity!r}")
    grouped: Dict[str, List[AnyPosition]] = defaultdict(list)
    for position in realized_positions(positions):
        grouped[_period_key(position.close_date, granularity)].append(position)  # type: ignore[arg-type]

    results: List[PeriodPerformance] = []
    for period, bucket in grouped.items():
        pnls = [profit_loss(p) for p in bucket]
        winners = sum(1 for pnl in pnls if pnl > 0)
        held = sum(position_days_held(p) for p in bucket)
        results.append(
            PeriodPerformance(
                period=period,
                trade_count=len(bucket),
                winning_trades=winners,
                losing_trades=sum(1 for pnl in pnls if pnl < 0),
                total_pnl=sum(pnls, Decimal("0")),
                total_fees=sum((p.fees for p in bucket), Decimal("0")),
                win_rate=Decimal(winners) / Decimal(len(bucket)) * PERCENT,
                average_days_held=Decimal(held) / Decimal(len(bucket)),
            )
        )
    results.sort(key=lambda item: item.period, reverse=True)
    return results


@dataclass(frozen=True)
class TickerPerformance:
    symbol: str
    trade_count: int
    total_pnl: Decimal
    total_collateral: Decimal
    return_on_risk: Decimal
    annualized_return_on_risk: Decimal


def ticker_performance(positions: Iterable[AnyPosition]) -> List[TickerPerformance]:
    """
    Realized results per underlying symbol, highest P&L first.

    RoR is capital-weighted (summed P&L over summed collateral). The annualized
    figure scales it by 365 over the symbol's average days held and is undefined
    when either input is.
    """
    grouped: Dict[str, List[AnyPosition]] = defaultdict(list)
    for position in realized_positions(positions):
        grouped[position.symbol].append(position)

    results: List[TickerPerformance] = []
    for symbol, bucket in grouped.items():
        pnl = sum((profit_loss(p) for p in bucket), Decimal("0"))
        locked = total_deployed_capital(bucket)
        ror = ratio_percent(pnl, locked)
        average_held = Decimal(sum(position_days_held(p) for p in bucket)) / Decimal(len(bucket))
        if ror.is_finite() and average_held > 0:
            annualized = ror * DAYS_PER_YEAR / average_held
        else:
            annualized = UNDEFINED_RATIO
        results.append(
            TickerPerformance(
                symbol=symbol,
                trade_count=len(bucket),
                total_pnl=pnl,
                total_collateral=locked,
                return_on_risk=ror,
                annualized_return_on_risk=annualized,
            )
        )
    results.sort(key=lambda item: (-item.total_pnl, item.symbol))
    return results


@dataclass(frozen=True)
class PortfolioSummary:
    """Headline figures for one portfolio snapshot."""

    open_count: int
    realized_count: int
    realized_pnl: Decimal
    unrealized_pnl: Decimal
    total_fees: Decimal
    win_rate: Decimal
    average_days_held: Decimal
    return_on_risk: Decimal
    average_return_on_risk: Decimal
    strategies: List[StrategyPerformance] = field(default_factory=list)
    monthly: List[PeriodPerformance] = field(default_factory=list)
    yearly: List[PeriodPerformance] = field(default_factory=list)
    tickers: List[TickerPerformance] = field(default_factory=list)
    warnings: List[InconsistentChainState] = field(default_factory=list)


def summarize_portfolio(
    positions: Iterable[AnyPosition],
    chains: Iterable[Chain] = (),
    *,
    as_of: Optional[date | datetime] = None,
) -> PortfolioSummary:
    snapshot = list(positions)
    chain_list = list(chains)
    realized = realized_positions(snapshot)
    held = [position_days_held(p, as_of=as_of) for p in realized]
    average_held = (Decimal(sum(held)) / Decimal(len(held))) if held else ZERO
    return PortfolioSummary(
        open_count=sum(1 for p in snapshot if p.status == PositionStatus.OPEN),
        realized_count=len(realized),
        realized_pnl=sum((profit_loss(p) for p in realized), Decimal("0")),
        unrealized_pnl=unrealized_portfolio_pnl(snapshot),
        total_fees=sum((p.fees for p in snapshot), Decimal("0")),
        win_rate=win_rate(snapshot),
        average_days_held=average_held,
        return_on_risk=portfolio_return_on_risk(snapshot),
        average_return_on_risk=average_return_on_risk(snapshot),
        strategies=strategy_performance(snapshot),
        monthly=period_performance(snapshot, "month"),
        yearly=period_performance(snapshot, "year"),
        tickers=ticker_performance(snapshot),
        warnings=find_chain_inconsistencies(chain_list, snapshot),
    )
