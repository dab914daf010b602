"""Shared CLI helpers: parameter types, error translation and table builders."""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from ..core.errors import PositionValidationError
from ..core.models import Chain
from ..services.chains import ChainValuation
from ..services.display import prepare_chain_display, prepare_position_display
from ..services.quotes import StaticQuoteProvider
from ..services.valuation import AnyPosition, value_position

FormatChoice = click.Choice(["table", "json"], case_sensitive=False)
DEFAULT_PORTFOLIO = "default"


class DecimalType(click.ParamType):
    """Click parameter that parses into :class:`~decimal.Decimal`."""

    name = "decimal"

    def convert(self, value: Any, param: Optional[click.Parameter], ctx: Optional[click.Context]):
        if isinstance(value, Decimal):
            return value
        try:
            parsed = Decimal(str(value).strip().replace(",", "").lstrip("$"))
        except (InvalidOperation, TypeError):
            self.fail(f"{value!r} is not a valid decimal number.", param, ctx)
        if not parsed.is_finite():
            self.fail(f"{value!r} is not a finite number.", param, ctx)
        return parsed


DECIMAL = DecimalType()
DATE = click.DateTime(formats=["%Y-%m-%d"])


def as_date(value: Optional[datetime]) -> Optional[date]:
    return value.date() if value is not None else None


def parse_price_pairs(pairs: Iterable[str]) -> StaticQuoteProvider:
    """Build a quote provider from ``SYMBOL=PRICE`` strings."""
    prices: Dict[str, Decimal] = {}
    for pair in pairs:
        symbol, sep, raw_price = pair.partition("=")
        if not sep or not symbol.strip():
            raise click.BadParameter(f"Expected SYMBOL=PRICE, got {pair!r}", param_hint="--price")
        prices[symbol] = DECIMAL.convert(raw_price, None, None)
    return StaticQuoteProvider(prices)


@contextmanager
def domain_errors() -> Iterator[None]:
    """Translate engine exceptions into click errors with readable messages."""
    try:
        yield
    except PositionValidationError as exc:
        details = "\n".join(f"  {field}: {message}" for field, message in exc.errors.items())
        raise click.ClickException(f"Validation failed:\n{details}") from exc
    except LookupError as exc:
        raise click.ClickException(str(exc)) from exc


def build_console() -> Console:
    return Console(width=200, force_terminal=False)


def echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2))


def build_position_table(
    positions: Iterable[AnyPosition], *, title: str = "Positions", as_of: Optional[date] = None
) -> Table:
    table = Table(title=title, expand=True)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Contract", style="magenta", no_wrap=True)
    table.add_column("Strategy", style="cyan", no_wrap=True)
    table.add_column("Qty", justify="right")
    table.add_column("Premium", justify="right")
    table.add_column("Status", style="yellow", no_wrap=True)
    table.add_column("Break-even", justify="right")
    table.add_column("DTE", justify="right")
    table.add_column("DH", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("Collateral", justify="right")
    table.add_column("RoR", justify="right")
    table.add_column("Ann. RoR", justify="right")

    for position in positions:
        row = prepare_position_display(position, value_position(position, as_of=as_of))
        table.add_row(
            row["id"],
            row["contract"],
            row["strategy"],
            row["contracts"],
            row["premium"],
            row["status"],
            row["break_even"],
            row["dte"],
            row["days_held"],
            row["pnl"],
            row["collateral"],
            row["ror"],
            row["annualized_ror"],
        )
    return table


def build_chain_table(rows: Iterable[Tuple[Chain, ChainValuation, int]]) -> Table:
    table = Table(title="Roll Chains", expand=True)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Chain", style="magenta", no_wrap=True)
    table.add_column("Opened", style="cyan", no_wrap=True)
    table.add_column("Status", style="yellow", no_wrap=True)
    table.add_column("Legs", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("Collateral", justify="right")
    table.add_column("RoR", justify="right")

    for chain, valuation, leg_count in rows:
        row = prepare_chain_display(chain, valuation, leg_count)
        table.add_row(
            row["id"],
            row["display_name"],
            row["opened"],
            row["status"],
            row["legs"],
            row["pnl"],
            row["collateral"],
            row["ror"],
        )
    return table
