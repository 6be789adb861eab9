"""
Position Models
===============

Dataclasses for position data read from the position registry.
"""

from dataclasses import dataclass
from typing import Optional

from ..utils.units import is_zero_address


@dataclass(frozen=True)
class Position:
    """Position as returned by the registry (getPosition)."""
    token_id: int
    owner: str
    margin: float        # USDC
    size: float          # signed base units, > 0 long, < 0 short
    entry_price: float
    market_id: str
    opened_at: int       # unix seconds

    @property
    def is_open(self) -> bool:
        """Owned and non-zero size."""
        return not is_zero_address(self.owner) and self.size != 0

    @property
    def is_long(self) -> bool:
        return self.size > 0

    @property
    def abs_size(self) -> float:
        return abs(self.size)

    def unrealized_pnl(self, price: float) -> float:
        """Mark-to-market PnL at the given price, in quote units."""
        return self.size * (price - self.entry_price)


@dataclass(frozen=True)
class PositionHealth:
    """
    Per-cycle health snapshot of one position.

    Derived from the ledger's liquidatability query plus the local
    profit estimate. Never persisted.
    """
    token_id: int
    owner: str
    health_factor: float
    is_liquidatable: bool
    current_price: float     # price observed by the ledger
    margin: float
    position_size: float     # absolute
    is_long: bool
    estimated_profit: float
    market_id: Optional[str] = None

    @property
    def side(self) -> str:
        return "long" if self.is_long else "short"
