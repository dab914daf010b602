"""
Command-line interface for optionbook.

Provides the CLI command group and registers individual subcommands.
"""

from __future__ import annotations

from typing import Optional

import click

from .. import __version__
from ..utils.log import setup_logging
from .chains import chain_command, chains_command, delete_chain_command
from .positions import (
    close_command,
    delete_command,
    due_command,
    list_command,
    open_command,
    roll_command,
    show_command,
)
from .summary import check_command, summary_command

LogLevelChoice = click.Choice(
    ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False
)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=LogLevelChoice,
    envvar="OPTIONBOOK_LOG_LEVEL",
    help="Logging level (default WARNING).",
)
def main(log_level: Optional[str]):
    """Optionbook - options position lifecycle and P&L tracker."""
    setup_logging(log_level)


# Register CLI subcommands
main.add_command(open_command)
main.add_command(list_command)
main.add_command(show_command)
main.add_command(close_command)
main.add_command(roll_command)
main.add_command(due_command)
main.add_command(delete_command)
main.add_command(chain_command)
main.add_command(chains_command)
main.add_command(delete_chain_command)
main.add_command(summary_command)
main.add_command(check_command)


if __name__ == "__main__":
    main()
