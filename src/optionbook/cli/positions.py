"""CLI commands for opening, listing, closing and rolling positions."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

import click

from ..core.dates import now_eastern, to_eastern_date
from ..core.models import (
    REALIZED_STATUSES,
    Direction,
    LegTerms,
    OpenPosition,
    OptionKind,
    PositionStatus,
    TransitionFields,
)
from ..persistence import SQLiteRepository
from ..services import trades
from ..services.display import format_currency
from ..services.json_serializer import (
    serialize_position,
    serialize_roll_result,
    serialize_valued_position,
)
from ..services.lifecycle import positions_due_for_expiry
from ..services.valuation import profit_loss, value_position
from .utils import (
    DATE,
    DECIMAL,
    DEFAULT_PORTFOLIO,
    FormatChoice,
    as_date,
    build_console,
    build_position_table,
    domain_errors,
    echo_json,
    parse_price_pairs,
)

KindChoice = click.Choice([kind.value for kind in OptionKind], case_sensitive=False)
DirectionChoice = click.Choice([direction.value for direction in Direction], case_sensitive=False)
StatusChoice = click.Choice([status.value for status in PositionStatus], case_sensitive=False)
CloseStatusChoice = click.Choice(
    [status.value for status in PositionStatus if status is not PositionStatus.ROLLED],
    case_sensitive=False,
)

_format_option = click.option(
    "--format",
    "output_format",
    type=FormatChoice,
    default="table",
    show_default=True,
    help="Output format.",
)


def _canonical(choice: str, enum_type):
    for member in enum_type:
        if member.value.lower() == choice.lower():
            return member
    raise click.BadParameter(choice)


@click.command("open")
@click.option("--portfolio", "portfolio_id", default=DEFAULT_PORTFOLIO, show_default=True)
@click.option("--symbol", required=True, help="Underlying ticker symbol.")
@click.option("--kind", "option_kind", type=KindChoice, required=True, help="Call or Put.")
@click.option("--direction", type=DirectionChoice, required=True, help="Buy or Sell.")
@click.option("--strike", type=DECIMAL, required=True, help="Strike price.")
@click.option("--premium", type=DECIMAL, required=True, help="Premium per share.")
@click.option("--contracts", type=int, default=1, show_default=True)
@click.option("--expiry", type=DATE, required=True, help="Expiry date (YYYY-MM-DD).")
@click.option("--open-date", type=DATE, help="Trade date (YYYY-MM-DD); defaults to today.")
@click.option("--fees", type=DECIMAL, default=Decimal("0"), show_default=True)
@click.option("--collateral", type=DECIMAL, help="Collateral override for covered calls.")
@_format_option
def open_command(
    portfolio_id: str,
    symbol: str,
    option_kind: str,
    direction: str,
    strike: Decimal,
    premium: Decimal,
    contracts: int,
    expiry: datetime,
    open_date: Optional[datetime],
    fees: Decimal,
    collateral: Optional[Decimal],
    output_format: str,
) -> None:
    """Record a newly opened option position."""
    position = OpenPosition(
        portfolio_id=portfolio_id,
        symbol=symbol,
        option_kind=_canonical(option_kind, OptionKind),
        direction=_canonical(direction, Direction),
        strike=strike,
        premium=premium,
        contracts=contracts,
        open_date=as_date(open_date) or to_eastern_date(),
        expiry_date=expiry.date(),
        fees=fees,
        collateral_override=collateral,
    )
    with domain_errors():
        stored = trades.open_position(SQLiteRepository(), position)

    if output_format.lower() == "json":
        echo_json(serialize_position(stored))
        return
    click.echo(f"Opened {stored.position_spec} as {stored.id}.")


@click.command("list")
@click.option("--portfolio", "portfolio_id", help="Only positions in this portfolio.")
@click.option("--symbol", help="Only positions on this underlying.")
@click.option("--status", type=StatusChoice, help="Only positions in this status.")
@_format_option
def list_command(
    portfolio_id: Optional[str],
    symbol: Optional[str],
    status: Optional[str],
    output_format: str,
) -> None:
    """List stored positions."""
    repository = SQLiteRepository()
    positions = repository.list_positions(
        portfolio_id=portfolio_id,
        symbol=symbol,
        status=_canonical(status, PositionStatus) if status else None,
    )

    if output_format.lower() == "json":
        echo_json(
            [serialize_valued_position(p, value_position(p)) for p in positions]
        )
        return

    console = build_console()
    if not positions:
        console.print("[yellow]No positions match the requested filters.[/yellow]")
        return
    console.print(build_position_table(positions))


@click.command("show")
@click.argument("position_id")
@click.option(
    "--price",
    type=DECIMAL,
    help="Underlying price; shows what closing an open position at this price would realize.",
)
@_format_option
def show_command(position_id: str, price: Optional[Decimal], output_format: str) -> None:
    """Show one position with its derived figures."""
    with domain_errors():
        position = SQLiteRepository().require_position(position_id)
    valuation = value_position(position)

    if output_format.lower() == "json":
        echo_json(serialize_valued_position(position, valuation, mark_price=price))
        return

    console = build_console()
    console.print(build_position_table([position], title=position.position_spec))
    if position.exit_price is not None:
        console.print(f"Exit reference: {position.exit_price} on {position.close_date}")
    if price is not None and position.status == PositionStatus.OPEN:
        console.print(
            f"Closing at underlying {price} would realize "
            f"{format_currency(profit_loss(position, price))}"
        )


@click.command("close")
@click.argument("position_id")
@click.option(
    "--status",
    type=CloseStatusChoice,
    default=PositionStatus.CLOSED.value,
    show_default=True,
    help=(
        "Target status. Open only re-saves a position that is still open, "
        "e.g. to correct its fees; realized positions cannot be reopened."
    ),
)
@click.option("--exit-price", type=DECIMAL, help="Underlying price at close.")
@click.option("--close-date", type=DATE, help="Close date (YYYY-MM-DD); defaults to today.")
@click.option("--fees", type=DECIMAL, help="Total fees; defaults to $0.66 per contract if none recorded.")
@_format_option
def close_command(
    position_id: str,
    status: str,
    exit_price: Optional[Decimal],
    close_date: Optional[datetime],
    fees: Optional[Decimal],
    output_format: str,
) -> None:
    """Move an open position to Closed, Expired or Assigned, or re-save it as Open."""
    repository = SQLiteRepository()
    target = _canonical(status, PositionStatus)
    with domain_errors():
        stored = repository.require_position(position_id)
        if target in REALIZED_STATUSES:
            resolved_close = as_date(close_date) or stored.close_date or to_eastern_date()
        else:
            resolved_close = None
        updated = trades.transition_position(
            repository,
            position_id,
            target,
            TransitionFields(exit_price=exit_price, close_date=resolved_close, fees=fees),
        )

    if output_format.lower() == "json":
        echo_json(serialize_position(updated))
        return
    click.echo(
        f"{updated.position_spec} is now {updated.status.value} "
        f"(P&L {format_currency(updated.profit_loss)})."
    )


@click.command("roll")
@click.argument("position_id")
@click.option("--exit-premium", type=DECIMAL, required=True, help="Premium paid/received to close.")
@click.option("--new-strike", type=DECIMAL, help="Strike of the new leg; defaults to the current strike.")
@click.option("--new-premium", type=DECIMAL, required=True, help="Premium of the new leg.")
@click.option("--new-expiry", type=DATE, required=True, help="Expiry of the new leg (YYYY-MM-DD).")
@click.option("--new-fees", type=DECIMAL, help="Fees for the new leg; defaults to $0.66 per contract.")
@_format_option
def roll_command(
    position_id: str,
    exit_premium: Decimal,
    new_strike: Optional[Decimal],
    new_premium: Decimal,
    new_expiry: datetime,
    new_fees: Optional[Decimal],
    output_format: str,
) -> None:
    """Roll an open position into a new leg of the same chain."""
    repository = SQLiteRepository()
    with domain_errors():
        source = repository.require_position(position_id)
        terms = LegTerms(
            strike=new_strike if new_strike is not None else source.strike,
            premium=new_premium,
            expiry_date=new_expiry.date(),
            fees=new_fees,
        )
        result = trades.roll_stored_position(repository, position_id, exit_premium, terms)

    if output_format.lower() == "json":
        echo_json(serialize_roll_result(result))
        return
    click.echo(
        f"Rolled {result.realized_source.position_spec} "
        f"(leg P&L {format_currency(result.realized_source.profit_loss)}) "
        f"into {result.new_leg.position_spec} as {result.new_leg.id}."
    )
    click.echo(f"Chain {result.chain.id}{' (new)' if result.chain_created else ''}.")


@click.command("due")
@click.option("--portfolio", "portfolio_id", help="Only positions in this portfolio.")
@click.option(
    "--price",
    "prices",
    multiple=True,
    metavar="SYMBOL=PRICE",
    help="Underlying price used as the exit reference when expiring.",
)
@click.option("--apply", "apply_changes", is_flag=True, help="Mark due positions as Expired.")
@_format_option
def due_command(
    portfolio_id: Optional[str],
    prices: Tuple[str, ...],
    apply_changes: bool,
    output_format: str,
) -> None:
    """List open positions past their 16:00 ET expiry, optionally expiring them."""
    repository = SQLiteRepository()
    now = now_eastern()
    if apply_changes:
        quotes = parse_price_pairs(prices)
        with domain_errors():
            positions = trades.expire_due_positions(
                repository, quotes, portfolio_id=portfolio_id, now=now
            )
        title = "Expired Positions"
    else:
        positions = positions_due_for_expiry(
            repository.list_positions(portfolio_id=portfolio_id, status=PositionStatus.OPEN),
            now=now,
        )
        title = "Positions Due For Expiry"

    if output_format.lower() == "json":
        echo_json([serialize_position(p) for p in positions])
        return

    console = build_console()
    if not positions:
        console.print("[green]No positions are due for expiry.[/green]")
        return
    console.print(build_position_table(positions, title=title))


@click.command("delete")
@click.argument("position_id")
@click.option("--yes", "confirm_delete", is_flag=True, help="Delete without confirmation.")
def delete_command(position_id: str, confirm_delete: bool) -> None:
    """Delete a standalone position (chain members go with their chain)."""
    repository = SQLiteRepository()
    if not confirm_delete:
        if not click.confirm(f"Delete position {position_id}? This cannot be undone."):
            click.echo("Aborted.")
            return

    with domain_errors():
        deleted = repository.delete_position(position_id)
    if deleted:
        click.echo(f"Deleted position {position_id}.")
    else:
        raise click.ClickException(f"No position found with id {position_id}.")
