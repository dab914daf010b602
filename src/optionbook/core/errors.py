"""Exceptions raised by the position engine."""

from __future__ import annotations

from typing import Dict, Mapping


class PositionValidationError(ValueError):
    """Raised when a position or requested transition violates an invariant."""

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors: Dict[str, str] = dict(errors)
        message = "; ".join(f"{field}: {text}" for field, text in self.errors.items())
        super().__init__(message or "Invalid position")


class PositionNotFoundError(LookupError):
    """Raised when a position id is unknown to the repository."""

    def __init__(self, position_id: str) -> None:
        self.position_id = position_id
        super().__init__(f"Position {position_id} not found")


class ChainNotFoundError(LookupError):
    """Raised when a chain id is unknown to the repository."""

    def __init__(self, chain_id: str) -> None:
        self.chain_id = chain_id
        super().__init__(f"Chain {chain_id} not found")
