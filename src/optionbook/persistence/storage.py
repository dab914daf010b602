"""SQLite-backed persistence layer for optionbook positions and roll chains."""

from __future__ import annotations

import os
import sqlite3
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

DEFAULT_DB_PATH = Path.home() / ".optionbook" / "optionbook.db"
DB_ENV_VAR = "OPTIONBOOK_DB_PATH"


def _determine_db_path() -> Path:
    override = os.environ.get(DB_ENV_VAR)
    if override:
        return Path(override).expanduser().resolve()
    return DEFAULT_DB_PATH


class SQLiteStorage:
    """Thin wrapper around a SQLite database used to persist positions and chains."""

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = Path(db_path) if db_path is not None else _determine_db_path()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        with self._connect() as conn:
            conn.executescript(
                """
                PRAGMA foreign_keys = ON;

                CREATE TABLE IF NOT EXISTS chains (
                    id TEXT PRIMARY KEY,
                    portfolio_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    option_kind TEXT NOT NULL,
                    original_strike TEXT NOT NULL,
                    original_open_date TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'Active'
                );

                CREATE INDEX IF NOT EXISTS idx_chains_portfolio ON chains(portfolio_id);

                CREATE TABLE IF NOT EXISTS positions (
                    id TEXT PRIMARY KEY,
                    portfolio_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    option_kind TEXT NOT NULL,
                    direction TEXT NOT NULL,
                    strike TEXT NOT NULL,
                    premium TEXT NOT NULL,
                    contracts INTEGER NOT NULL,
                    open_date TEXT NOT NULL,
                    expiry_date TEXT NOT NULL,
                    status TEXT NOT NULL,
                    exit_price TEXT,
                    close_date TEXT,
                    fees TEXT NOT NULL DEFAULT '0',
                    chain_id TEXT REFERENCES chains(id),
                    collateral_override TEXT,
                    break_even TEXT,
                    profit_loss TEXT,
                    annualized_ror TEXT,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                CREATE INDEX IF NOT EXISTS idx_positions_portfolio ON positions(portfolio_id);
                CREATE INDEX IF NOT EXISTS idx_positions_chain ON positions(chain_id);
                CREATE INDEX IF NOT EXISTS idx_positions_status ON positions(status);
                CREATE INDEX IF NOT EXISTS idx_positions_symbol ON positions(symbol);
                """
            )
        self._initialized = True


# Values are stored as TEXT in SQLite to preserve Decimal precision.
NumberLike = Union[Decimal, float, int]


def decimal_to_text(value: Optional[NumberLike]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def text_to_decimal(value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(value)


@lru_cache(maxsize=1)
def get_storage() -> SQLiteStorage:
    """Return a cached storage instance."""
    return SQLiteStorage()
