"""Query and write helpers for persisted positions and roll chains."""

from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional, Union

from ..core.errors import ChainNotFoundError, PositionNotFoundError, PositionValidationError
from ..core.models import (
    Chain,
    ChainStatus,
    OpenPosition,
    PositionStatus,
    RealizedPosition,
    parse_position,
)
from ..services.lifecycle import recompute_chain_status
from ..services.roll import RollResult
from .storage import SQLiteStorage, decimal_to_text, get_storage, text_to_decimal

logger = logging.getLogger(__name__)

StoredPosition = Union[OpenPosition, RealizedPosition]

_POSITION_COLUMNS = (
    "id",
    "portfolio_id",
    "symbol",
    "option_kind",
    "direction",
    "strike",
    "premium",
    "contracts",
    "open_date",
    "expiry_date",
    "status",
    "exit_price",
    "close_date",
    "fees",
    "chain_id",
    "collateral_override",
    "break_even",
    "profit_loss",
    "annualized_ror",
)

_CHAIN_COLUMNS = (
    "id",
    "portfolio_id",
    "symbol",
    "option_kind",
    "original_strike",
    "original_open_date",
    "status",
)


class SQLiteRepository:
    """High-level read and write accessors for the SQLite persistence layer."""

    def __init__(self, storage: Optional[SQLiteStorage] = None) -> None:
        self._storage = storage or get_storage()

    def _connect(self) -> sqlite3.Connection:
        self._storage._ensure_initialized()  # type: ignore[attr-defined]
        return self._storage._connect()  # type: ignore[attr-defined]

    # Positions ---------------------------------------------------------------

    def add_position(self, position: StoredPosition) -> StoredPosition:
        """Insert a new position record."""
        with self._connect() as conn:
            self._insert_position(conn, position)
        return position

    def get_position(self, position_id: str) -> Optional[StoredPosition]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {', '.join(_POSITION_COLUMNS)} FROM positions WHERE id = ?",
                (position_id,),
            ).fetchone()
        return _row_to_position(row) if row else None

    def require_position(self, position_id: str) -> StoredPosition:
        position = self.get_position(position_id)
        if position is None:
            raise PositionNotFoundError(position_id)
        return position

    def list_positions(
        self,
        *,
        portfolio_id: Optional[str] = None,
        symbol: Optional[str] = None,
        status: Optional[Union[PositionStatus, str]] = None,
        chain_id: Optional[str] = None,
    ) -> List[StoredPosition]:
        """Return positions ordered by open date, optionally filtered."""
        query = [f"SELECT {', '.join(_POSITION_COLUMNS)} FROM positions"]
        clauses: list[str] = []
        params: list[object] = []

        if portfolio_id is not None:
            clauses.append("portfolio_id = ?")
            params.append(portfolio_id)
        if symbol is not None:
            clauses.append("symbol = ?")
            params.append(symbol.strip().upper())
        if status is not None:
            clauses.append("status = ?")
            params.append(PositionStatus(status).value)
        if chain_id is not None:
            clauses.append("chain_id = ?")
            params.append(chain_id)

        if clauses:
            query.append("WHERE " + " AND ".join(clauses))
        query.append("ORDER BY open_date ASC, created_at ASC, id ASC")

        with self._connect() as conn:
            rows = conn.execute("\n".join(query), params).fetchall()
        return [_row_to_position(row) for row in rows]

    def update_position(self, position: StoredPosition) -> StoredPosition:
        """
        Overwrite a stored position.

        Rolled legs are immutable and a position's chain id, once set, cannot change.
        """
        with self._connect() as conn:
            stored = self._fetch_position(conn, position.id)
            _ensure_editable(stored, position)
            self._write_position(conn, position)
        return position

    def delete_position(self, position_id: str) -> bool:
        """Delete a standalone position. Chain members can only go with their chain."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT chain_id FROM positions WHERE id = ?", (position_id,)
            ).fetchone()
            if row is None:
                return False
            if row["chain_id"]:
                raise PositionValidationError(
                    {
                        "chain_id": (
                            f"Position belongs to chain {row['chain_id']}; "
                            "delete the whole chain instead."
                        )
                    }
                )
            cursor = conn.execute("DELETE FROM positions WHERE id = ?", (position_id,))
            deleted = cursor.rowcount or 0
        return deleted > 0

    # Chains ------------------------------------------------------------------

    def add_chain(self, chain: Chain) -> Chain:
        with self._connect() as conn:
            self._insert_chain(conn, chain)
        return chain

    def get_chain(self, chain_id: str) -> Optional[Chain]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {', '.join(_CHAIN_COLUMNS)} FROM chains WHERE id = ?",
                (chain_id,),
            ).fetchone()
        return _row_to_chain(row) if row else None

    def require_chain(self, chain_id: str) -> Chain:
        chain = self.get_chain(chain_id)
        if chain is None:
            raise ChainNotFoundError(chain_id)
        return chain

    def list_chains(
        self,
        *,
        portfolio_id: Optional[str] = None,
        status: Optional[Union[ChainStatus, str]] = None,
    ) -> List[Chain]:
        query = [f"SELECT {', '.join(_CHAIN_COLUMNS)} FROM chains"]
        clauses: list[str] = []
        params: list[object] = []
        if portfolio_id is not None:
            clauses.append("portfolio_id = ?")
            params.append(portfolio_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(ChainStatus(status).value)
        if clauses:
            query.append("WHERE " + " AND ".join(clauses))
        query.append("ORDER BY original_open_date ASC, id ASC")

        with self._connect() as conn:
            rows = conn.execute("\n".join(query), params).fetchall()
        return [_row_to_chain(row) for row in rows]

    def update_chain(self, chain: Chain) -> Chain:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE chains SET status = ? WHERE id = ?",
                (chain.status.value, chain.id),
            )
            if not cursor.rowcount:
                raise ChainNotFoundError(chain.id)
        return chain

    def delete_chain(self, chain_id: str) -> int:
        """Delete a chain and every member position. Returns the number of positions removed."""
        with self._connect() as conn:
            exists = conn.execute("SELECT 1 FROM chains WHERE id = ?", (chain_id,)).fetchone()
            if exists is None:
                raise ChainNotFoundError(chain_id)
            cursor = conn.execute("DELETE FROM positions WHERE chain_id = ?", (chain_id,))
            removed = cursor.rowcount or 0
            conn.execute("DELETE FROM chains WHERE id = ?", (chain_id,))
        logger.info("Deleted chain %s with %d positions", chain_id, removed)
        return removed

    # Rolls -------------------------------------------------------------------

    def save_roll(self, result: RollResult) -> RollResult:
        """
        Persist a roll inside one transaction.

        Writes happen in the order :meth:`RollResult.ordered_records` emits them.
        The source row is only overwritten while it is still ``Open``, so a second
        roll of the same position fails instead of forking the chain.
        """
        source = result.realized_source
        conn = self._connect()
        try:
            with conn:
                if result.chain_created:
                    self._insert_chain(conn, result.chain)
                else:
                    cursor = conn.execute(
                        "UPDATE chains SET status = ? WHERE id = ?",
                        (result.chain.status.value, result.chain.id),
                    )
                    if not cursor.rowcount:
                        raise ChainNotFoundError(result.chain.id)
                cursor = self._write_position(
                    conn, source, where_status=PositionStatus.OPEN
                )
                if not cursor.rowcount:
                    raise PositionValidationError(
                        {"status": f"Position {source.id} is no longer Open and cannot be rolled"}
                    )
                self._insert_position(conn, result.new_leg)
        finally:
            conn.close()
        logger.info(
            "Saved roll of %s into %s on chain %s",
            source.id,
            result.new_leg.id,
            result.chain.id,
        )
        return result

    # Transitions -------------------------------------------------------------

    def save_transition(self, position: StoredPosition) -> Optional[Chain]:
        """
        Overwrite a transitioned position and refresh its chain's status together.

        Both writes share one transaction, so a failure leaves neither applied.
        Returns the chain as stored afterwards, or ``None`` for a standalone position.
        """
        conn = self._connect()
        try:
            with conn:
                stored = self._fetch_position(conn, position.id)
                _ensure_editable(stored, position)
                self._write_position(conn, position)
                if not position.chain_id:
                    return None
                chain = self._fetch_chain(conn, position.chain_id)
                members = [
                    _row_to_position(row)
                    for row in conn.execute(
                        f"SELECT {', '.join(_POSITION_COLUMNS)} FROM positions WHERE chain_id = ?",
                        (chain.id,),
                    ).fetchall()
                ]
                refreshed = recompute_chain_status(chain, members)
                if refreshed.status != chain.status:
                    conn.execute(
                        "UPDATE chains SET status = ? WHERE id = ?",
                        (refreshed.status.value, refreshed.id),
                    )
                    logger.info("Chain %s is now %s", refreshed.id, refreshed.status.value)
        finally:
            conn.close()
        return refreshed

    # Helpers -----------------------------------------------------------------

    def _fetch_chain(self, conn: sqlite3.Connection, chain_id: str) -> Chain:
        row = conn.execute(
            f"SELECT {', '.join(_CHAIN_COLUMNS)} FROM chains WHERE id = ?",
            (chain_id,),
        ).fetchone()
        if row is None:
            raise ChainNotFoundError(chain_id)
        return _row_to_chain(row)

    def _fetch_position(self, conn: sqlite3.Connection, position_id: str) -> StoredPosition:
        row = conn.execute(
            f"SELECT {', '.join(_POSITION_COLUMNS)} FROM positions WHERE id = ?",
            (position_id,),
        ).fetchone()
        if row is None:
            raise PositionNotFoundError(position_id)
        return _row_to_position(row)

    def _insert_chain(self, conn: sqlite3.Connection, chain: Chain) -> None:
        conn.execute(
            f"""
            INSERT INTO chains ({', '.join(_CHAIN_COLUMNS)})
            VALUES ({', '.join('?' for _ in _CHAIN_COLUMNS)})
            """,
            (
                chain.id,
                chain.portfolio_id,
                chain.symbol,
                chain.option_kind.value,
                decimal_to_text(chain.original_strike),
                chain.original_open_date.isoformat(),
                chain.status.value,
            ),
        )

    def _insert_position(self, conn: sqlite3.Connection, position: StoredPosition) -> None:
        conn.execute(
            f"""
            INSERT INTO positions ({', '.join(_POSITION_COLUMNS)})
            VALUES ({', '.join('?' for _ in _POSITION_COLUMNS)})
            """,
            _position_to_row(position),
        )

    def _write_position(
        self,
        conn: sqlite3.Connection,
        position: StoredPosition,
        *,
        where_status: Optional[PositionStatus] = None,
    ) -> sqlite3.Cursor:
        values = _position_to_row(position)
        assignments = ", ".join(f"{column} = ?" for column in _POSITION_COLUMNS[1:])
        sql = f"UPDATE positions SET {assignments} WHERE id = ?"
        params: list[object] = [*values[1:], position.id]
        if where_status is not None:
            sql += " AND status = ?"
            params.append(where_status.value)
        return conn.execute(sql, params)


def _ensure_editable(stored: StoredPosition, updated: StoredPosition) -> None:
    if stored.status == PositionStatus.ROLLED:
        raise PositionValidationError(
            {"status": "Rolled positions cannot be edited; delete the chain and re-enter its legs."}
        )
    if updated.status == PositionStatus.ROLLED:
        raise PositionValidationError(
            {"status": "Use the roll operation to move a position to Rolled"}
        )
    if stored.chain_id and updated.chain_id != stored.chain_id:
        raise PositionValidationError({"chain_id": "A position's chain cannot be changed"})


def _position_to_row(position: StoredPosition) -> tuple:
    return (
        position.id,
        position.portfolio_id,
        position.symbol,
        position.option_kind.value,
        position.direction.value,
        decimal_to_text(position.strike),
        decimal_to_text(position.premium),
        position.contracts,
        position.open_date.isoformat(),
        position.expiry_date.isoformat(),
        position.status.value,
        decimal_to_text(position.exit_price),
        position.close_date.isoformat() if position.close_date else None,
        decimal_to_text(position.fees),
        position.chain_id,
        decimal_to_text(position.collateral_override),
        decimal_to_text(position.break_even),
        decimal_to_text(position.profit_loss),
        decimal_to_text(position.annualized_ror),
    )


def _row_to_position(row) -> StoredPosition:
    return parse_position(
        {
            "id": row["id"],
            "portfolio_id": row["portfolio_id"],
            "symbol": row["symbol"],
            "option_kind": row["option_kind"],
            "direction": row["direction"],
            "strike": text_to_decimal(row["strike"]),
            "premium": text_to_decimal(row["premium"]),
            "contracts": int(row["contracts"]),
            "open_date": row["open_date"],
            "expiry_date": row["expiry_date"],
            "status": row["status"],
            "exit_price": text_to_decimal(row["exit_price"]),
            "close_date": row["close_date"],
            "fees": text_to_decimal(row["fees"]),
            "chain_id": row["chain_id"],
            "collateral_override": text_to_decimal(row["collateral_override"]),
            "break_even": text_to_decimal(row["break_even"]),
            "profit_loss": text_to_decimal(row["profit_loss"]),
            "annualized_ror": text_to_decimal(row["annualized_ror"]),
        }
    )


def _row_to_chain(row) -> Chain:
    return Chain(
        id=row["id"],
        portfolio_id=row["portfolio_id"],
        symbol=row["symbol"],
        option_kind=row["option_kind"],
        original_strike=text_to_decimal(row["original_strike"]),
        original_open_date=row["original_open_date"],
        status=row["status"],
    )
