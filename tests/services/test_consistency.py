"""Tests for chain inconsistency detection."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from optionbook.core.models import Chain, ChainStatus, OptionKind, PositionStatus
from optionbook.services.consistency import check_chain, find_chain_inconsistencies


def _chain(chain_id="c1", status=ChainStatus.ACTIVE):
    return Chain(
        id=chain_id,
        portfolio_id="default",
        symbol="AAPL",
        option_kind=OptionKind.PUT,
        original_strike=Decimal("50"),
        original_open_date=date(2025, 1, 2),
        status=status,
    )


def _rolled(make_position, chain_id="c1"):
    return make_position(
        status=PositionStatus.ROLLED,
        exit_price=Decimal("0.50"),
        close_date=date(2025, 1, 20),
        chain_id=chain_id,
    )


def test_healthy_chain_has_no_warnings(make_position):
    legs = [_rolled(make_position), make_position(chain_id="c1")]

    assert check_chain(_chain(), legs) == []


def test_interrupted_roll_is_reported(make_position):
    issues = check_chain(_chain(), [_rolled(make_position)])

    assert [issue.kind for issue in issues] == ["missing_current_leg"]
    assert issues[0].open_leg_count == 0
    assert "needs repair" in issues[0].message


def test_multiple_open_legs_are_reported(make_position):
    legs = [make_position(chain_id="c1"), make_position(chain_id="c1")]

    issues = check_chain(_chain(), legs)

    assert [issue.kind for issue in issues] == ["multiple_current_legs"]
    assert issues[0].open_leg_count == 2


def test_closed_chain_with_open_leg_is_stale(make_position):
    issues = check_chain(_chain(status=ChainStatus.CLOSED), [make_position(chain_id="c1")])

    assert [issue.kind for issue in issues] == ["stale_status"]


def test_closed_chain_without_open_legs_is_fine(make_position):
    assert check_chain(_chain(status=ChainStatus.CLOSED), [_rolled(make_position)]) == []


def test_find_chain_inconsistencies_logs_each_issue(make_position, caplog):
    positions = [
        _rolled(make_position, "broken"),
        _rolled(make_position, "healthy"),
        make_position(chain_id="healthy"),
    ]
    chains = [_chain("broken"), _chain("healthy"), _chain("empty")]

    with caplog.at_level(logging.WARNING, logger="optionbook"):
        issues = find_chain_inconsistencies(chains, positions)

    assert sorted(issue.chain_id for issue in issues) == ["broken", "empty"]
    assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 2
