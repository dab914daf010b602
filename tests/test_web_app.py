"""Tests for the optionbook FastAPI application."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from optionbook.core.dates import to_eastern_date
from optionbook.core.models import Chain, OptionKind
from optionbook.persistence import SQLiteRepository, SQLiteStorage
from optionbook.services.quotes import StaticQuoteProvider
from optionbook.web import create_app
from optionbook.web.dependencies import get_quote_provider, get_repository

POSITION = {
    "symbol": "aapl",
    "option_kind": "Put",
    "direction": "Sell",
    "strike": "50",
    "premium": "2.00",
    "contracts": 1,
    "open_date": "2025-01-02",
    "expiry_date": "2025-02-21",
    "fees": "0.66",
}


@pytest.fixture
def repository(tmp_path):
    return SQLiteRepository(SQLiteStorage(tmp_path / "web.db"))


@pytest.fixture
def quotes():
    return StaticQuoteProvider({"AAPL": Decimal("48")})


@pytest.fixture
def client(repository, quotes):
    app = create_app()
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_quote_provider] = lambda: quotes
    return TestClient(app)


def _create(client, **overrides):
    response = client.post("/api/positions", json={**POSITION, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


def _roll(client, position_id, **overrides):
    body = {
        "exit_premium": "0.50",
        "new_strike": "48",
        "new_premium": "1.80",
        "new_expiry_date": (to_eastern_date() + timedelta(days=30)).isoformat(),
    }
    body.update(overrides)
    return client.post(f"/api/positions/{position_id}/roll", json=body)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_position(client, repository):
    payload = _create(client)

    assert payload["symbol"] == "AAPL"
    assert payload["status"] == "Open"
    assert payload["break_even"] == "48"
    assert repository.get_position(payload["id"]) is not None


def test_create_position_reports_validation_errors(client):
    response = client.post(
        "/api/positions", json={**POSITION, "strike": "0", "contracts": 0}
    )

    assert response.status_code == 400
    errors = response.json()["detail"]["errors"]
    assert set(errors) == {"strike", "contracts"}


def test_create_position_rejects_malformed_body(client):
    response = client.post("/api/positions", json={"symbol": "AAPL"})

    assert response.status_code == 422


def test_list_positions_includes_valuation_and_mark(client):
    _create(client)
    _create(client, symbol="MSFT")

    response = client.get("/api/positions", params={"symbol": "aapl"})

    assert response.status_code == 200
    positions = response.json()["positions"]
    assert len(positions) == 1
    position = positions[0]
    assert position["valuation"]["collateral"] == "5000"
    assert position["valuation"]["return_on_risk"] == "4"
    assert position["mark_price"] == "48"
    # (2 - 2) * 100 - 0.66 at the current mark
    assert position["mark_profit_loss"] == "-0.66"


def test_unknown_position_returns_404(client):
    assert client.get("/api/positions/missing").status_code == 404
    assert client.delete("/api/positions/missing").status_code == 404


def test_transition_closes_position(client):
    position_id = _create(client)["id"]

    response = client.post(
        f"/api/positions/{position_id}/transition",
        json={"status": "Closed", "exit_price": "55", "close_date": "2025-02-01"},
    )

    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["status"] == "Closed"
    assert payload["profit_loss"] == "199.34"

    detail = client.get(f"/api/positions/{position_id}").json()
    assert detail["mark_price"] is None
    assert detail["mark_profit_loss"] is None


def test_transition_to_rolled_is_rejected(client):
    position_id = _create(client)["id"]

    response = client.post(
        f"/api/positions/{position_id}/transition",
        json={"status": "Rolled", "exit_price": "0.50", "close_date": "2025-01-20"},
    )

    assert response.status_code == 400
    assert "roll operation" in response.json()["detail"]["errors"]["status"]


def test_transition_without_exit_data_is_rejected(client):
    position_id = _create(client)["id"]

    response = client.post(f"/api/positions/{position_id}/transition", json={"status": "Expired"})

    assert response.status_code == 400
    assert set(response.json()["detail"]["errors"]) == {"exit_price", "close_date"}


def test_roll_and_chain_endpoints(client):
    position_id = _create(client)["id"]

    rolled = _roll(client, position_id)

    assert rolled.status_code == 200, rolled.text
    result = rolled.json()
    assert result["chain_created"] is True
    assert result["realized_source"]["profit_loss"] == "149.34"
    chain_id = result["chain"]["id"]

    chains = client.get("/api/chains").json()["chains"]
    assert [c["id"] for c in chains] == [chain_id]
    assert chains[0]["collateral"] == "9800"

    detail = client.get(f"/api/chains/{chain_id}").json()
    assert [leg["status"] for leg in detail["legs"]] == ["Open", "Rolled"]
    assert detail["warnings"] == []


def test_rolling_a_rolled_leg_is_rejected(client):
    position_id = _create(client)["id"]
    _roll(client, position_id)

    response = _roll(client, position_id, new_strike="46")

    assert response.status_code == 400
    assert "status" in response.json()["detail"]["errors"]


def test_chain_member_delete_is_rejected_but_chain_delete_works(client, repository):
    position_id = _create(client)["id"]
    result = _roll(client, position_id).json()
    chain_id = result["chain"]["id"]

    member = client.delete(f"/api/positions/{result['new_leg']['id']}")
    assert member.status_code == 400

    response = client.delete(f"/api/chains/{chain_id}")
    assert response.status_code == 200
    assert response.json() == {"deleted": chain_id, "positions_removed": 2}
    assert repository.list_positions() == []
    assert client.get(f"/api/chains/{chain_id}").status_code == 404


def test_chain_detail_reports_interrupted_roll(client, repository):
    repository.add_chain(
        Chain(
            id="broken",
            portfolio_id="default",
            symbol="AAPL",
            option_kind=OptionKind.PUT,
            original_strike=Decimal("50"),
            original_open_date=date(2025, 1, 2),
        )
    )

    detail = client.get("/api/chains/broken").json()

    assert [w["kind"] for w in detail["warnings"]] == ["missing_current_leg"]


def test_portfolio_summary(client):
    closed_id = _create(client)["id"]
    _create(client)
    _create(client, portfolio_id="other")
    client.post(
        f"/api/positions/{closed_id}/transition",
        json={"status": "Closed", "exit_price": "55", "close_date": "2025-02-01"},
    )

    response = client.get("/api/portfolios/default/summary")

    assert response.status_code == 200
    payload = response.json()
    assert payload["portfolio_id"] == "default"
    assert payload["open_count"] == 1
    assert payload["realized_pnl"] == "199.34"
    assert payload["unrealized_pnl"] == "200"
    assert payload["total_fees"] == "1.32"
    assert payload["average_return_on_risk"] == "3.9868"
    assert [m["period"] for m in payload["monthly"]] == ["2025-02"]
    assert payload["monthly"][0]["total_pnl"] == "199.34"
    assert [t["symbol"] for t in payload["tickers"]] == ["AAPL"]
    assert payload["tickers"][0]["total_collateral"] == "5000"
