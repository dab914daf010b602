"""Tests for chain-level aggregation."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from optionbook.core.models import PositionStatus
from optionbook.services.chains import (
    chain_collateral,
    chain_members,
    chain_profit_loss,
    chain_return_on_risk,
    current_leg,
    index_chains,
    value_chain,
)


@pytest.fixture
def two_leg_chain(make_position):
    rolled = make_position(
        id="leg-1",
        status=PositionStatus.ROLLED,
        strike=Decimal("50"),
        premium=Decimal("2.00"),
        fees=Decimal("0.66"),
        exit_price=Decimal("0.50"),
        open_date=date(2025, 1, 2),
        close_date=date(2025, 1, 20),
        chain_id="c1",
    )
    current = make_position(
        id="leg-2",
        strike=Decimal("48"),
        premium=Decimal("1.80"),
        open_date=date(2025, 1, 20),
        expiry_date=date(2025, 3, 21),
        chain_id="c1",
    )
    return [rolled, current]


def test_chain_profit_loss_sums_every_leg(two_leg_chain, make_position):
    unrelated = make_position(premium=Decimal("9.99"))

    assert chain_profit_loss("c1", two_leg_chain + [unrelated]) == Decimal("329.34")


def test_chain_profit_loss_is_order_independent(two_leg_chain):
    assert chain_profit_loss("c1", two_leg_chain) == chain_profit_loss(
        "c1", list(reversed(two_leg_chain))
    )


def test_chain_collateral_adds_each_leg(two_leg_chain):
    assert chain_collateral("c1", two_leg_chain) == Decimal("9800")


def test_chain_return_on_risk(two_leg_chain):
    expected = Decimal("329.34") / Decimal("9800") * Decimal("100")

    assert chain_return_on_risk("c1", two_leg_chain) == expected


def test_value_chain_matches_component_functions(two_leg_chain):
    valuation = value_chain("c1", two_leg_chain)

    assert valuation.profit_loss == Decimal("329.34")
    assert valuation.collateral == Decimal("9800")
    assert valuation.return_on_risk == chain_return_on_risk("c1", two_leg_chain)


def test_value_chain_without_members_has_undefined_ror():
    valuation = value_chain("missing", [])

    assert valuation.profit_loss == Decimal("0")
    assert valuation.collateral == Decimal("0")
    assert valuation.return_on_risk.is_nan()


def test_chain_members_are_newest_first_by_default(two_leg_chain):
    members = chain_members("c1", list(reversed(two_leg_chain)))

    assert [leg.id for leg in members] == ["leg-2", "leg-1"]
    assert [leg.id for leg in chain_members("c1", two_leg_chain, newest_first=False)] == [
        "leg-1",
        "leg-2",
    ]


def test_index_chains_groups_oldest_first(two_leg_chain, make_position):
    standalone = make_position(id="solo")

    index = index_chains([two_leg_chain[1], standalone, two_leg_chain[0]])

    assert list(index) == ["c1"]
    assert [leg.id for leg in index["c1"]] == ["leg-1", "leg-2"]


def test_current_leg_is_the_single_open_member(two_leg_chain):
    assert current_leg("c1", two_leg_chain).id == "leg-2"


def test_current_leg_is_none_when_ambiguous(two_leg_chain, make_position):
    extra = make_position(id="leg-3", chain_id="c1", open_date=date(2025, 1, 21))

    assert current_leg("c1", two_leg_chain + [extra]) is None
    assert current_leg("c1", two_leg_chain[:1]) is None
