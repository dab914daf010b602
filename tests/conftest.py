"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest

from optionbook.core.models import (
    Direction,
    OpenPosition,
    OptionKind,
    PositionStatus,
    RealizedPosition,
)
from optionbook.persistence import storage as storage_module


@pytest.fixture(scope="session", autouse=True)
def isolated_persistence(tmp_path_factory):
    """Ensure tests use an isolated SQLite database and reset caches between runs."""

    db_dir = tmp_path_factory.mktemp("persistence-db")
    db_path = db_dir / "optionbook.db"
    monkeypatch = pytest.MonkeyPatch()
    monkeypatch.setenv(storage_module.DB_ENV_VAR, str(db_path))
    storage_module.get_storage.cache_clear()
    try:
        yield
    finally:
        storage_module.get_storage.cache_clear()
        monkeypatch.undo()


def build_position(**overrides):
    """Short put on AAPL unless overridden; ``status`` selects the variant."""
    status = PositionStatus(overrides.pop("status", PositionStatus.OPEN))
    data = {
        "portfolio_id": "default",
        "symbol": "AAPL",
        "option_kind": OptionKind.PUT,
        "direction": Direction.SELL,
        "strike": Decimal("50"),
        "premium": Decimal("2.00"),
        "contracts": 1,
        "open_date": date(2025, 1, 2),
        "expiry_date": date(2025, 2, 21),
        "fees": Decimal("0"),
    }
    data.update(overrides)
    if status == PositionStatus.OPEN:
        return OpenPosition(**data)
    return RealizedPosition(status=status, **data)


@pytest.fixture
def make_position():
    return build_position
