"""CLI commands for portfolio summaries and chain integrity checks."""

from __future__ import annotations

from typing import Optional

import click
from rich.table import Table

from ..persistence import SQLiteRepository
from ..services import trades
from ..services.display import (
    prepare_period_display,
    prepare_strategy_display,
    prepare_summary_display,
    prepare_ticker_display,
)
from ..services.json_serializer import serialize_summary, serialize_warning
from .utils import FormatChoice, build_console, echo_json


def _build_strategy_table(summary) -> Table:
    table = Table(title="Strategy Performance", expand=True)
    table.add_column("Strategy", style="cyan", no_wrap=True)
    table.add_column("Trades", justify="right")
    table.add_column("Realized", justify="right")
    table.add_column("Open", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("Avg RoR", justify="right")
    table.add_column("Win Rate", justify="right")
    for row in summary.strategies:
        display = prepare_strategy_display(row)
        table.add_row(
            display["strategy"],
            display["trades"],
            display["realized"],
            display["open"],
            display["pnl"],
            display["avg_ror"],
            display["win_rate"],
        )
    return table


def _build_period_table(rows, title: str) -> Table:
    table = Table(title=title, expand=True)
    table.add_column("Period", style="cyan", no_wrap=True)
    table.add_column("Trades", justify="right")
    table.add_column("Wins", justify="right")
    table.add_column("Losses", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("Fees", justify="right")
    table.add_column("Win Rate", justify="right")
    table.add_column("Avg Days", justify="right")
    for row in rows:
        display = prepare_period_display(row)
        table.add_row(
            display["period"],
            display["trades"],
            display["wins"],
            display["losses"],
            display["pnl"],
            display["fees"],
            display["win_rate"],
            display["avg_days_held"],
        )
    return table


def _build_ticker_table(rows, title: str) -> Table:
    table = Table(title=title, expand=True)
    table.add_column("Symbol", style="cyan", no_wrap=True)
    table.add_column("Trades", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("Collateral", justify="right")
    table.add_column("RoR", justify="right")
    table.add_column("Annualized", justify="right")
    for row in rows:
        display = prepare_ticker_display(row)
        table.add_row(
            display["symbol"],
            display["trades"],
            display["pnl"],
            display["collateral"],
            display["ror"],
            display["annualized_ror"],
        )
    return table


@click.command("summary")
@click.option("--portfolio", "portfolio_id", help="Only positions in this portfolio.")
@click.option(
    "--top",
    "top_tickers",
    type=click.IntRange(min=0),
    default=5,
    show_default=True,
    help="Symbols shown in the ticker table; 0 shows all. JSON output always lists all.",
)
@click.option(
    "--format",
    "output_format",
    type=FormatChoice,
    default="table",
    show_default=True,
    help="Output format.",
)
def summary_command(portfolio_id: Optional[str], top_tickers: int, output_format: str) -> None:
    """Show realized and unrealized P&L with strategy, period and ticker breakdowns."""
    summary = trades.portfolio_summary(SQLiteRepository(), portfolio_id)

    if output_format.lower() == "json":
        echo_json(serialize_summary(summary, portfolio_id=portfolio_id))
        return

    console = build_console()
    headline = Table(title="Portfolio Summary", show_header=False)
    headline.add_column("Metric", style="cyan", no_wrap=True)
    headline.add_column("Value", justify="right")
    for label, value in prepare_summary_display(summary).items():
        headline.add_row(label, value)
    console.print(headline)

    if summary.strategies:
        console.print()
        console.print(_build_strategy_table(summary))

    if summary.yearly:
        console.print()
        console.print(_build_period_table(summary.yearly, "Yearly Performance"))
        console.print()
        console.print(_build_period_table(summary.monthly, "Monthly Performance"))

    if summary.tickers:
        tickers = summary.tickers[:top_tickers] if top_tickers else summary.tickers
        title = f"Top {len(tickers)} Symbols" if top_tickers else "Symbol Performance"
        console.print()
        console.print(_build_ticker_table(tickers, title))

    for warning in summary.warnings:
        console.print(f"[red]Warning:[/red] {warning.message}")


@click.command("check")
@click.option("--portfolio", "portfolio_id", help="Only chains in this portfolio.")
@click.option(
    "--format",
    "output_format",
    type=FormatChoice,
    default="table",
    show_default=True,
    help="Output format.",
)
@click.pass_context
def check_command(ctx: click.Context, portfolio_id: Optional[str], output_format: str) -> None:
    """Report chains that need repair. Exits with status 1 when any are found."""
    warnings = trades.check_chains(SQLiteRepository(), portfolio_id)

    if output_format.lower() == "json":
        echo_json([serialize_warning(w) for w in warnings])
    else:
        console = build_console()
        if not warnings:
            console.print("[green]All chains are consistent.[/green]")
        for warning in warnings:
            console.print(f"[red]{warning.kind}[/red] {warning.message}")

    if warnings:
        ctx.exit(1)
