"""CLI commands for inspecting and deleting roll chains."""

from __future__ import annotations

from typing import Optional

import click

from ..persistence import SQLiteRepository
from ..services import trades
from ..services.chains import chain_members, index_chains, value_chain
from ..services.display import format_currency, format_percent
from ..services.json_serializer import serialize_chain
from .utils import (
    FormatChoice,
    build_chain_table,
    build_console,
    build_position_table,
    domain_errors,
    echo_json,
)


@click.command("chains")
@click.option("--portfolio", "portfolio_id", help="Only chains in this portfolio.")
@click.option(
    "--format",
    "output_format",
    type=FormatChoice,
    default="table",
    show_default=True,
    help="Output format.",
)
def chains_command(portfolio_id: Optional[str], output_format: str) -> None:
    """List roll chains with their aggregate P&L and return on risk."""
    repository = SQLiteRepository()
    snapshot = trades.load_snapshot(repository, portfolio_id)
    by_chain = index_chains(snapshot.positions)
    rows = []
    for chain in snapshot.chains:
        legs = by_chain.get(chain.id, [])
        rows.append((chain, value_chain(chain.id, legs), len(legs)))

    if output_format.lower() == "json":
        echo_json([serialize_chain(chain, valuation) for chain, valuation, _ in rows])
        return

    console = build_console()
    if not rows:
        console.print("[yellow]No roll chains recorded.[/yellow]")
        return
    console.print(build_chain_table(rows))


@click.command("chain")
@click.argument("chain_id")
@click.option(
    "--format",
    "output_format",
    type=FormatChoice,
    default="table",
    show_default=True,
    help="Output format.",
)
def chain_command(chain_id: str, output_format: str) -> None:
    """Show one chain's legs, newest first."""
    repository = SQLiteRepository()
    with domain_errors():
        chain = repository.require_chain(chain_id)
    legs = chain_members(chain_id, repository.list_positions(chain_id=chain_id))
    valuation = value_chain(chain_id, legs)

    if output_format.lower() == "json":
        echo_json(serialize_chain(chain, valuation, legs))
        return

    console = build_console()
    strike = chain.original_strike.normalize()
    console.print(
        build_position_table(
            legs, title=f"{chain.symbol} ${strike:f} {chain.option_kind.value} chain ({chain.status.value})"
        )
    )
    console.print(
        f"Chain P&L {format_currency(valuation.profit_loss)} on "
        f"{format_currency(valuation.collateral)} collateral "
        f"(RoR {format_percent(valuation.return_on_risk)})"
    )


@click.command("delete-chain")
@click.argument("chain_id")
@click.option("--yes", "confirm_delete", is_flag=True, help="Delete without confirmation.")
def delete_chain_command(chain_id: str, confirm_delete: bool) -> None:
    """Delete a chain and every one of its legs."""
    repository = SQLiteRepository()
    if not confirm_delete:
        if not click.confirm(
            f"Delete chain {chain_id} and all of its legs? This cannot be undone."
        ):
            click.echo("Aborted.")
            return

    with domain_errors():
        removed = trades.delete_chain(repository, chain_id)
    click.echo(f"Deleted chain {chain_id} and {removed} positions.")
