"""CLI integration tests for optionbook commands."""

import json
from datetime import date, timedelta
from decimal import Decimal

import pytest
from click.testing import CliRunner

from optionbook import __version__
from optionbook.cli.commands import main as optionbook_cli
from optionbook.core.dates import to_eastern_date
from optionbook.core.models import Chain, OptionKind
from optionbook.persistence import SQLiteRepository
from optionbook.persistence import storage as storage_module


@pytest.fixture(autouse=True)
def cli_db(tmp_path, monkeypatch):
    monkeypatch.setenv(storage_module.DB_ENV_VAR, str(tmp_path / "cli.db"))
    storage_module.get_storage.cache_clear()
    yield
    storage_module.get_storage.cache_clear()


@pytest.fixture
def runner():
    return CliRunner()


def _future(days=30):
    return (to_eastern_date() + timedelta(days=days)).isoformat()


def _open(runner, *extra):
    args = [
        "open",
        "--symbol",
        "aapl",
        "--kind",
        "put",
        "--direction",
        "sell",
        "--strike",
        "50",
        "--premium",
        "2.00",
        "--open-date",
        "2025-01-02",
        "--expiry",
        "2025-02-21",
        "--format",
        "json",
        *extra,
    ]
    result = runner.invoke(optionbook_cli, args)
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def _roll(runner, position_id, *extra):
    return runner.invoke(
        optionbook_cli,
        [
            "roll",
            position_id,
            "--exit-premium",
            "0.50",
            "--new-strike",
            "48",
            "--new-premium",
            "1.80",
            "--new-expiry",
            _future(),
            *extra,
        ],
    )


def test_cli_help_lists_all_commands(runner):
    result = runner.invoke(optionbook_cli, ["--help"])

    assert result.exit_code == 0
    for command in (
        "open",
        "list",
        "show",
        "close",
        "roll",
        "due",
        "delete",
        "chains",
        "chain",
        "delete-chain",
        "summary",
        "check",
    ):
        assert command in result.output


def test_cli_version(runner):
    result = runner.invoke(optionbook_cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_cli_unknown_command_reports_error(runner):
    result = runner.invoke(optionbook_cli, ["unknown"])

    assert result.exit_code != 0
    assert "No such command" in result.output


def test_open_stores_position_with_derived_fields(runner):
    payload = _open(runner)

    assert payload["symbol"] == "AAPL"
    assert payload["status"] == "Open"
    assert payload["option_kind"] == "Put"
    assert payload["break_even"] == "48"
    assert payload["profit_loss"] == "200"
    assert SQLiteRepository().get_position(payload["id"]) is not None


def test_open_text_output(runner):
    result = runner.invoke(
        optionbook_cli,
        [
            "open",
            "--symbol",
            "TSLA",
            "--kind",
            "Call",
            "--direction",
            "Sell",
            "--strike",
            "250",
            "--premium",
            "3.10",
            "--expiry",
            _future(),
        ],
    )

    assert result.exit_code == 0, result.output
    assert result.output.startswith("Opened TSLA $250 Call")


def test_open_rejects_invalid_terms(runner):
    result = runner.invoke(
        optionbook_cli,
        [
            "open",
            "--symbol",
            "AAPL",
            "--kind",
            "Put",
            "--direction",
            "Sell",
            "--strike",
            "50",
            "--premium",
            "0",
            "--open-date",
            "2025-03-01",
            "--expiry",
            "2025-02-21",
        ],
    )

    assert result.exit_code != 0
    assert "Validation failed" in result.output
    assert "premium: Premium must be greater than 0" in result.output
    assert "expiry_date" in result.output
    assert SQLiteRepository().list_positions() == []


def test_list_renders_table(runner):
    _open(runner)

    result = runner.invoke(optionbook_cli, ["list"])

    assert result.exit_code == 0
    assert "AAPL $50 Put 2025-02-21" in result.output
    assert "Cash-Secured Put" in result.output


def test_list_json_filters_by_status(runner):
    _open(runner)

    result = runner.invoke(optionbook_cli, ["list", "--status", "closed", "--format", "json"])

    assert result.exit_code == 0
    assert json.loads(result.output) == []


def test_list_without_positions(runner):
    result = runner.invoke(optionbook_cli, ["list"])

    assert result.exit_code == 0
    assert "No positions" in result.output


def test_show_with_hypothetical_price(runner):
    position_id = _open(runner, "--fees", "0.66")["id"]

    result = runner.invoke(optionbook_cli, ["show", position_id, "--price", "48"])

    assert result.exit_code == 0, result.output
    assert "would realize -$0.66" in result.output


def test_show_unknown_position(runner):
    result = runner.invoke(optionbook_cli, ["show", "missing"])

    assert result.exit_code != 0
    assert "Position missing not found" in result.output


def test_close_fills_default_fees(runner):
    position_id = _open(runner)["id"]

    result = runner.invoke(
        optionbook_cli,
        ["close", position_id, "--exit-price", "55", "--close-date", "2025-02-01", "--format", "json"],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["status"] == "Closed"
    assert payload["fees"] == "0.66"
    assert payload["profit_loss"] == "199.34"
    assert payload["close_date"] == "2025-02-01"


def test_close_requires_exit_price(runner):
    position_id = _open(runner)["id"]

    result = runner.invoke(optionbook_cli, ["close", position_id])

    assert result.exit_code != 0
    assert "exit_price" in result.output
    assert SQLiteRepository().require_position(position_id).status.value == "Open"


def test_closed_position_cannot_reopen(runner):
    position_id = _open(runner)["id"]
    runner.invoke(
        optionbook_cli, ["close", position_id, "--exit-price", "55", "--close-date", "2025-02-01"]
    )

    result = runner.invoke(optionbook_cli, ["close", position_id, "--status", "Open"])

    assert result.exit_code != 0
    assert "cannot move to Open" in result.output


def test_close_as_open_only_resaves_fees(runner):
    position_id = _open(runner)["id"]

    help_text = " ".join(runner.invoke(optionbook_cli, ["close", "--help"]).output.split())
    result = runner.invoke(
        optionbook_cli,
        ["close", position_id, "--status", "Open", "--fees", "1.32", "--format", "json"],
    )

    assert "realized positions cannot be reopened" in help_text
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["status"] == "Open"
    assert payload["fees"] == "1.32"


def test_roll_creates_chain(runner):
    position_id = _open(runner, "--fees", "0.66")["id"]

    result = _roll(runner, position_id, "--format", "json")

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["chain_created"] is True
    assert payload["realized_source"]["status"] == "Rolled"
    assert payload["realized_source"]["profit_loss"] == "149.34"
    assert payload["new_leg"]["fees"] == "0.66"
    assert payload["new_leg"]["strike"] == "48"

    chain = runner.invoke(optionbook_cli, ["chain", payload["chain"]["id"], "--format", "json"])
    legs = json.loads(chain.output)["legs"]
    assert [leg["status"] for leg in legs] == ["Open", "Rolled"]


def test_roll_text_output_and_chain_listing(runner):
    position_id = _open(runner, "--fees", "0.66")["id"]

    result = _roll(runner, position_id)

    assert result.exit_code == 0, result.output
    assert "leg P&L $149.34" in result.output
    assert "(new)" in result.output

    listing = runner.invoke(optionbook_cli, ["chains"])
    assert listing.exit_code == 0
    assert "AAPL $50 Put" in listing.output
    assert "Active" in listing.output


def test_rolled_position_cannot_roll_or_close(runner):
    position_id = _open(runner)["id"]
    _roll(runner, position_id)

    again = _roll(runner, position_id)
    close = runner.invoke(
        optionbook_cli, ["close", position_id, "--exit-price", "55", "--close-date", "2025-02-01"]
    )

    assert again.exit_code != 0
    assert close.exit_code != 0
    assert "Rolled positions cannot be edited" in close.output


def test_chain_members_are_deleted_with_their_chain(runner):
    position_id = _open(runner)["id"]
    payload = json.loads(_roll(runner, position_id, "--format", "json").output)
    chain_id = payload["chain"]["id"]

    member = runner.invoke(optionbook_cli, ["delete", payload["new_leg"]["id"], "--yes"])
    assert member.exit_code != 0
    assert "delete the whole chain" in member.output

    result = runner.invoke(optionbook_cli, ["delete-chain", chain_id, "--yes"])
    assert result.exit_code == 0
    assert f"Deleted chain {chain_id} and 2 positions." in result.output
    assert SQLiteRepository().list_positions() == []


def test_delete_standalone_position(runner):
    position_id = _open(runner)["id"]

    result = runner.invoke(optionbook_cli, ["delete", position_id], input="y\n")

    assert result.exit_code == 0
    assert f"Deleted position {position_id}." in result.output


def test_delete_aborts_without_confirmation(runner):
    position_id = _open(runner)["id"]

    result = runner.invoke(optionbook_cli, ["delete", position_id], input="n\n")

    assert "Aborted." in result.output
    assert SQLiteRepository().get_position(position_id) is not None


def test_due_lists_and_expires_positions(runner):
    position_id = _open(runner)["id"]

    listed = runner.invoke(optionbook_cli, ["due", "--format", "json"])
    assert [p["id"] for p in json.loads(listed.output)] == [position_id]

    applied = runner.invoke(
        optionbook_cli, ["due", "--apply", "--price", "AAPL=52", "--format", "json"]
    )

    assert applied.exit_code == 0, applied.output
    expired = json.loads(applied.output)[0]
    assert expired["status"] == "Expired"
    assert expired["close_date"] == "2025-02-21"
    assert expired["exit_price"] == "52"
    assert expired["fees"] == "0.66"


def test_due_rejects_malformed_price(runner):
    result = runner.invoke(optionbook_cli, ["due", "--apply", "--price", "AAPL"])

    assert result.exit_code != 0
    assert "SYMBOL=PRICE" in result.output


def test_summary_json(runner):
    position_id = _open(runner)["id"]
    _open(runner)
    runner.invoke(
        optionbook_cli, ["close", position_id, "--exit-price", "55", "--close-date", "2025-02-01"]
    )

    result = runner.invoke(optionbook_cli, ["summary", "--portfolio", "default", "--format", "json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["open_count"] == 1
    assert payload["realized_count"] == 1
    assert payload["realized_pnl"] == "199.34"
    assert payload["unrealized_pnl"] == "200"
    assert payload["win_rate"] == "100"
    assert payload["average_return_on_risk"] == "3.9868"
    assert [m["period"] for m in payload["monthly"]] == ["2025-02"]
    assert [y["period"] for y in payload["yearly"]] == ["2025"]
    assert payload["tickers"][0]["symbol"] == "AAPL"
    assert payload["tickers"][0]["total_pnl"] == "199.34"


def test_summary_table(runner):
    _open(runner)

    result = runner.invoke(optionbook_cli, ["summary"])

    assert result.exit_code == 0
    assert "Portfolio Summary" in result.output
    assert "Unrealized P&L" in result.output
    assert "—" in result.output


def test_check_passes_for_consistent_chains(runner):
    position_id = _open(runner)["id"]
    _roll(runner, position_id)

    result = runner.invoke(optionbook_cli, ["check"])

    assert result.exit_code == 0
    assert "All chains are consistent" in result.output


def test_check_flags_interrupted_roll(runner):
    SQLiteRepository().add_chain(
        Chain(
            id="broken",
            portfolio_id="default",
            symbol="AAPL",
            option_kind=OptionKind.PUT,
            original_strike=Decimal("50"),
            original_open_date=date(2025, 1, 2),
        )
    )

    result = runner.invoke(optionbook_cli, ["check", "--format", "json"])

    assert result.exit_code == 1
    assert '"missing_current_leg"' in result.output


def test_summary_table_shows_period_and_symbol_breakdowns(runner):
    for symbol in ("AAPL", "MSFT"):
        position_id = _open(runner, "--symbol", symbol)["id"]
        runner.invoke(
            optionbook_cli,
            ["close", position_id, "--exit-price", "55", "--close-date", "2025-02-01"],
        )

    top = runner.invoke(optionbook_cli, ["summary", "--top", "1"])
    everything = runner.invoke(optionbook_cli, ["summary", "--top", "0"])

    assert top.exit_code == 0, top.output
    assert "Yearly Performance" in top.output
    assert "Monthly Performance" in top.output
    assert "2025-02" in top.output
    assert "Top 1 Symbols" in top.output
    assert "Symbol Performance" in everything.output
    assert "MSFT" in everything.output
