"""
Ledger Client
=============

Boundary to the settlement system: position registry reads and
liquidation authority reads/writes.

Reads are idempotent. Writes are at-most-once per call; retrying is the
caller's decision.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from ..models import LiquidationConfig, Position


@dataclass(frozen=True)
class Receipt:
    """Confirmed transaction receipt."""
    tx_hash: str
    success: bool
    block_number: Optional[int] = None
    gas_used: Optional[int] = None


class LedgerClient(ABC):
    """
    Async interface to the settlement contracts.

    Implementations raise the exceptions in api.errors:
    - PositionNotFound: position missing or closed
    - NotLiquidatable: liquidation refused because the position is healthy
    - TransientNetworkError: network failure or timeout
    - UnknownLedgerError: anything else
    """

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Release connections."""

    @abstractmethod
    async def get_position(self, token_id: int) -> Position:
        """Full position detail. Raises PositionNotFound."""

    @abstractmethod
    async def is_liquidatable(self, token_id: int) -> Tuple[bool, float, float]:
        """(liquidatable, observed_price, health_factor)."""

    @abstractmethod
    async def get_liquidation_config(self, market_id: str) -> Optional[LiquidationConfig]:
        """Liquidation parameters for a market, None if never configured."""

    @abstractmethod
    async def set_liquidation_config(
        self,
        market_id: str,
        maintenance_margin_bps: int,
        liquidation_fee_bps: int,
        insurance_fee_bps: int,
        active: bool,
    ) -> Receipt:
        """Write liquidation parameters and wait for confirmation."""

    @abstractmethod
    async def liquidate(self, token_id: int) -> Receipt:
        """Submit a liquidation and wait for confirmation."""
