from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from liquidator.api.errors import PositionNotFound
from liquidator.api.ledger import LedgerClient, Receipt
from liquidator.config import Config
from liquidator.models import LiquidationConfig, Position, PositionHealth

MARKET = "0x" + "ab" * 32
OWNER = "0x1111111111111111111111111111111111111111"
ZERO = "0x0000000000000000000000000000000000000000"

ACTIVE_CONFIG = LiquidationConfig(500, 250, 250, True)


def make_config(**overrides) -> Config:
    values = dict(
        scan_interval_sec=0.01,
        retry_backoff_sec=0.0,
        batch_cooldown_sec=0.0,
        attempt_timeout_sec=5.0,
        max_token_id=10,
    )
    values.update(overrides)
    return Config(**values)


def make_position(token_id: int, size: float = 1.0, owner: str = OWNER, market_id: str = MARKET) -> Position:
    return Position(
        token_id=token_id,
        owner=owner,
        margin=100.0,
        size=size,
        entry_price=4000.0,
        market_id=market_id,
        opened_at=1_700_000_000,
    )


def make_health(token_id: int, health_factor: float = 0.8, profit: float = 10.0, liquidatable: Optional[bool] = None) -> PositionHealth:
    if liquidatable is None:
        liquidatable = health_factor < 1.0
    return PositionHealth(
        token_id=token_id,
        owner=OWNER,
        health_factor=health_factor,
        is_liquidatable=liquidatable,
        current_price=4000.0,
        margin=100.0,
        position_size=1.0,
        is_long=True,
        estimated_profit=profit,
        market_id=MARKET,
    )


class FakeLedger(LedgerClient):
    """In-memory ledger with scripted outcomes and call accounting."""

    def __init__(
        self,
        positions: Optional[Dict[int, Position]] = None,
        health: Optional[Dict[int, Tuple[bool, float, float]]] = None,
        liquidation_config: Optional[LiquidationConfig] = ACTIVE_CONFIG,
        latency: float = 0.0,
    ) -> None:
        self.positions = dict(positions or {})
        self.health = dict(health or {})
        self.liquidation_config = liquidation_config
        self.latency = latency

        # token_id -> list of exceptions (or None for success), consumed per attempt
        self.liquidate_script: Dict[int, List[Optional[BaseException]]] = {}
        self.read_errors: Dict[int, BaseException] = {}
        self.health_errors: Dict[int, BaseException] = {}
        self.config_read_errors: List[BaseException] = []
        self.config_write_errors: List[BaseException] = []

        self.liquidate_calls: Dict[int, int] = {}
        self.config_reads = 0
        self.config_writes: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.on_liquidate = None

    def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)

    async def get_position(self, token_id: int) -> Position:
        self._enter()
        try:
            await asyncio.sleep(self.latency)
            if token_id in self.read_errors:
                raise self.read_errors[token_id]
            if token_id not in self.positions:
                raise PositionNotFound(f"Position {token_id} not found", token_id=token_id)
            return self.positions[token_id]
        finally:
            self.in_flight -= 1

    async def is_liquidatable(self, token_id: int) -> Tuple[bool, float, float]:
        if token_id in self.health_errors:
            raise self.health_errors[token_id]
        return self.health.get(token_id, (False, 4000.0, 2.0))

    async def get_liquidation_config(self, market_id: str) -> Optional[LiquidationConfig]:
        self.config_reads += 1
        if self.config_read_errors:
            raise self.config_read_errors.pop(0)
        return self.liquidation_config

    async def set_liquidation_config(self, market_id, maintenance_margin_bps, liquidation_fee_bps,
                                     insurance_fee_bps, active) -> Receipt:
        self.config_writes.append((market_id, maintenance_margin_bps, liquidation_fee_bps, insurance_fee_bps, active))
        if self.config_write_errors:
            raise self.config_write_errors.pop(0)
        self.liquidation_config = LiquidationConfig(
            maintenance_margin_bps, liquidation_fee_bps, insurance_fee_bps, active
        )
        return Receipt(tx_hash="0xconfig", success=True)

    async def liquidate(self, token_id: int) -> Receipt:
        self.liquidate_calls[token_id] = self.liquidate_calls.get(token_id, 0) + 1
        if self.on_liquidate is not None:
            self.on_liquidate(token_id)
        self._enter()
        try:
            await asyncio.sleep(self.latency)
            script = self.liquidate_script.get(token_id)
            if script:
                outcome = script.pop(0)
                if outcome is not None:
                    raise outcome
            return Receipt(tx_hash=f"0xliq{token_id}", success=True)
        finally:
            self.in_flight -= 1

    @property
    def total_liquidate_calls(self) -> int:
        return sum(self.liquidate_calls.values())


class FakePriceFeed:
    def __init__(self, price: float = 4000.0) -> None:
        self.price = price
        self.calls = 0
        self.on_fetch = None

    async def fetch_reference_price(self) -> float:
        self.calls += 1
        if self.on_fetch is not None:
            self.on_fetch(self.calls)
        return self.price

    async def close(self) -> None:
        pass


@pytest.fixture
def cfg() -> Config:
    return make_config()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()
