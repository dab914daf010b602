"""
Market-data capability consumed at the boundary layer.

Valuation never fetches prices itself. The CLI and web layers receive a
:class:`QuoteProvider` and pass any price it returns into the pure functions.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class QuoteProvider(Protocol):
    """Returns the latest price for a symbol, or ``None`` when unknown."""

    def get_price(self, symbol: str) -> Optional[Decimal]: ...


class StaticQuoteProvider:
    """In-memory provider seeded with fixed prices."""

    def __init__(self, prices: Optional[Mapping[str, Decimal]] = None) -> None:
        self._prices: Dict[str, Decimal] = {
            symbol.strip().upper(): Decimal(price) for symbol, price in (prices or {}).items()
        }

    def set_price(self, symbol: str, price: Decimal) -> None:
        self._prices[symbol.strip().upper()] = Decimal(price)

    def get_price(self, symbol: str) -> Optional[Decimal]:
        return self._prices.get(symbol.strip().upper())
