"""FastAPI application factory for the optionbook JSON API."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterator, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from ..core.dates import to_eastern_date
from ..core.errors import PositionValidationError
from ..core.models import (
    Direction,
    LegTerms,
    OpenPosition,
    OptionKind,
    PositionStatus,
    TransitionFields,
)
from ..persistence import SQLiteRepository
from ..services import trades
from ..services.chains import chain_members, index_chains, value_chain
from ..services.consistency import check_chain
from ..services.json_serializer import (
    serialize_chain,
    serialize_decimal,
    serialize_position,
    serialize_roll_result,
    serialize_summary,
    serialize_valued_position,
    serialize_warning,
)
from ..services.quotes import QuoteProvider
from ..services.valuation import AnyPosition, profit_loss, value_position
from .dependencies import get_quote_provider, get_repository


class PositionCreate(BaseModel):
    portfolio_id: str = Field(default="default", description="Owning portfolio id")
    symbol: str
    option_kind: OptionKind
    direction: Direction
    strike: Decimal
    premium: Decimal
    contracts: int = 1
    open_date: Optional[date] = Field(default=None, description="Defaults to today (US/Eastern)")
    expiry_date: date
    fees: Decimal = Decimal("0")
    collateral_override: Optional[Decimal] = None


class TransitionRequest(BaseModel):
    status: PositionStatus
    exit_price: Optional[Decimal] = None
    close_date: Optional[date] = None
    fees: Optional[Decimal] = None


class RollRequest(BaseModel):
    exit_premium: Decimal
    new_strike: Optional[Decimal] = Field(
        default=None, description="Defaults to the current strike"
    )
    new_premium: Decimal
    new_expiry_date: date
    new_fees: Optional[Decimal] = Field(
        default=None, description="Defaults to $0.66 per contract"
    )


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except PositionValidationError as exc:
        raise HTTPException(
            status_code=400, detail={"message": str(exc), "errors": exc.errors}
        ) from exc
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _with_mark(position: AnyPosition, quotes: QuoteProvider) -> dict[str, object]:
    mark = quotes.get_price(position.symbol) if position.status == PositionStatus.OPEN else None
    payload = serialize_valued_position(position, value_position(position), mark_price=mark)
    payload["mark_profit_loss"] = (
        serialize_decimal(profit_loss(position, mark)) if mark is not None else None
    )
    return payload


def create_app() -> FastAPI:  # noqa: C901
    """Construct and return the FastAPI application."""
    app = FastAPI(title="Optionbook API")

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/positions", tags=["api"])
    async def list_positions_api(
        portfolio_id: str | None = Query(default=None),
        symbol: str | None = Query(default=None),
        status: PositionStatus | None = Query(default=None),
        repository: SQLiteRepository = Depends(get_repository),
        quotes: QuoteProvider = Depends(get_quote_provider),
    ) -> dict[str, object]:
        """API endpoint returning positions with their valuations."""
        positions = repository.list_positions(
            portfolio_id=portfolio_id,
            symbol=(symbol or "").strip() or None,
            status=status,
        )
        return {"positions": [_with_mark(p, quotes) for p in positions]}

    @app.post("/api/positions", status_code=201, tags=["api"])
    async def create_position_api(
        payload: PositionCreate,
        repository: SQLiteRepository = Depends(get_repository),
    ) -> dict[str, object]:
        position = OpenPosition(
            portfolio_id=payload.portfolio_id,
            symbol=payload.symbol,
            option_kind=payload.option_kind,
            direction=payload.direction,
            strike=payload.strike,
            premium=payload.premium,
            contracts=payload.contracts,
            open_date=payload.open_date or to_eastern_date(),
            expiry_date=payload.expiry_date,
            fees=payload.fees,
            collateral_override=payload.collateral_override,
        )
        with _translate_errors():
            stored = trades.open_position(repository, position)
        return serialize_position(stored)

    @app.get("/api/positions/{position_id}", tags=["api"])
    async def get_position_api(
        position_id: str,
        repository: SQLiteRepository = Depends(get_repository),
        quotes: QuoteProvider = Depends(get_quote_provider),
    ) -> dict[str, object]:
        with _translate_errors():
            position = repository.require_position(position_id)
        return _with_mark(position, quotes)

    @app.delete("/api/positions/{position_id}", tags=["api"])
    async def delete_position_api(
        position_id: str,
        repository: SQLiteRepository = Depends(get_repository),
    ) -> dict[str, object]:
        with _translate_errors():
            deleted = repository.delete_position(position_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="Position not found")
        return {"deleted": position_id}

    @app.post("/api/positions/{position_id}/transition", tags=["api"])
    async def transition_position_api(
        position_id: str,
        payload: TransitionRequest,
        repository: SQLiteRepository = Depends(get_repository),
    ) -> dict[str, object]:
        """Change a position's status; Rolled is only reachable through the roll endpoint."""
        with _translate_errors():
            updated = trades.transition_position(
                repository,
                position_id,
                payload.status,
                TransitionFields(
                    exit_price=payload.exit_price,
                    close_date=payload.close_date,
                    fees=payload.fees,
                ),
            )
        return serialize_position(updated)

    @app.post("/api/positions/{position_id}/roll", tags=["api"])
    async def roll_position_api(
        position_id: str,
        payload: RollRequest,
        repository: SQLiteRepository = Depends(get_repository),
    ) -> dict[str, object]:
        with _translate_errors():
            source = repository.require_position(position_id)
            terms = LegTerms(
                strike=payload.new_strike if payload.new_strike is not None else source.strike,
                premium=payload.new_premium,
                expiry_date=payload.new_expiry_date,
                fees=payload.new_fees,
            )
            result = trades.roll_stored_position(
                repository, position_id, payload.exit_premium, terms
            )
        return serialize_roll_result(result)

    @app.get("/api/chains", tags=["api"])
    async def list_chains_api(
        portfolio_id: str | None = Query(default=None),
        repository: SQLiteRepository = Depends(get_repository),
    ) -> dict[str, object]:
        snapshot = trades.load_snapshot(repository, portfolio_id)
        by_chain = index_chains(snapshot.positions)
        chains = [
            serialize_chain(chain, value_chain(chain.id, by_chain.get(chain.id, [])))
            for chain in snapshot.chains
        ]
        return {"chains": chains}

    @app.get("/api/chains/{chain_id}", tags=["api"])
    async def get_chain_api(
        chain_id: str,
        repository: SQLiteRepository = Depends(get_repository),
    ) -> dict[str, object]:
        """Chain with aggregate figures, legs newest first, and any integrity warnings."""
        with _translate_errors():
            chain = repository.require_chain(chain_id)
        legs = chain_members(chain_id, repository.list_positions(chain_id=chain_id))
        payload = serialize_chain(chain, value_chain(chain_id, legs), legs)
        payload["warnings"] = [serialize_warning(w) for w in check_chain(chain, legs)]
        return payload

    @app.delete("/api/chains/{chain_id}", tags=["api"])
    async def delete_chain_api(
        chain_id: str,
        repository: SQLiteRepository = Depends(get_repository),
    ) -> dict[str, object]:
        with _translate_errors():
            removed = trades.delete_chain(repository, chain_id)
        return {"deleted": chain_id, "positions_removed": removed}

    @app.get("/api/portfolios/{portfolio_id}/summary", tags=["api"])
    async def portfolio_summary_api(
        portfolio_id: str,
        repository: SQLiteRepository = Depends(get_repository),
    ) -> dict[str, object]:
        summary = trades.portfolio_summary(repository, portfolio_id)
        return serialize_summary(summary, portfolio_id=portfolio_id)

    return app
