"""
Health Evaluator

Builds a PositionHealth for each open position:
1. Reads position detail from the registry
2. Reads liquidatability and health factor from the liquidation engine
3. Estimates the net profit of liquidating now

Margin math stays on the ledger. Only profitability is computed here.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from ..api.errors import PositionNotFound
from ..api.ledger import LedgerClient
from ..config import Config, config as default_config
from ..models import LiquidationConfig, PositionHealth

logger = logging.getLogger(__name__)


def estimate_liquidation_profit(
    position_size: float,
    ref_price: float,
    liquidation_config: Optional[LiquidationConfig],
    cfg: Config = None,
) -> float:
    """
    Estimate net profit of liquidating a position.

    profit = max(0, |size| * price * fee_rate - gas_cost)

    Args:
        position_size: Signed or absolute base size
        ref_price: Reference price in quote units
        liquidation_config: Market parameters (None or inactive -> 0)
        cfg: Config supplying the assumed gas price / limit

    Returns:
        Non-negative estimated profit in quote units
    """
    cfg = cfg or default_config
    if liquidation_config is None or not liquidation_config.is_active:
        return 0.0

    position_value = abs(position_size) * ref_price
    liquidation_fee = position_value * liquidation_config.liquidation_fee_rate
    gas_cost = cfg.gas_cost_estimate(ref_price)

    return max(0.0, liquidation_fee - gas_cost)


class HealthEvaluator:
    """
    Evaluates position health and liquidation profitability.

    Reads are independent per position and run concurrently. A read error
    drops that position for the current cycle only.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        cfg: Config = None,
        max_concurrent: int = None,
    ):
        self.ledger = ledger
        self.config = cfg or default_config
        self.max_concurrent = max_concurrent or self.config.max_concurrent_reads

    async def evaluate(self, token_ids: List[int], ref_price: float) -> List[PositionHealth]:
        """
        Evaluate positions at a reference price.

        Args:
            token_ids: Open position ids
            ref_price: Reference price used for profit estimation

        Returns:
            PositionHealth list in input order, minus positions that failed
        """
        semaphore = asyncio.Semaphore(self.max_concurrent)

        # One config read per market per call; failed reads are not cached
        market_configs: Dict[str, Optional[LiquidationConfig]] = {}
        config_lock = asyncio.Lock()

        async def config_for(market_id: str) -> Optional[LiquidationConfig]:
            async with config_lock:
                if market_id not in market_configs:
                    market_configs[market_id] = await self.ledger.get_liquidation_config(market_id)
                return market_configs[market_id]

        async def evaluate_one(token_id: int) -> Optional[PositionHealth]:
            async with semaphore:
                try:
                    return await self._evaluate_position(token_id, ref_price, config_for)
                except PositionNotFound as e:
                    logger.debug(f"Position {token_id} gone: {e}")
                except Exception as e:
                    logger.error(f"Error checking position {token_id}: {e}")
                return None

        results = await asyncio.gather(*[evaluate_one(t) for t in token_ids])
        return [r for r in results if r is not None]

    async def evaluate_one(self, token_id: int, ref_price: float) -> Optional[PositionHealth]:
        """Evaluate a single position; None if it could not be read."""
        results = await self.evaluate([token_id], ref_price)
        return results[0] if results else None

    async def _evaluate_position(self, token_id: int, ref_price: float, config_for) -> Optional[PositionHealth]:
        position = await self.ledger.get_position(token_id)
        if not position.is_open:
            logger.debug(f"Position {token_id} closed, skipping")
            return None

        liquidatable, observed_price, health_factor = await self.ledger.is_liquidatable(token_id)

        liquidation_config = await config_for(position.market_id)
        estimated_profit = estimate_liquidation_profit(
            position.size, ref_price, liquidation_config, self.config
        )

        return PositionHealth(
            token_id=token_id,
            owner=position.owner,
            health_factor=health_factor,
            is_liquidatable=liquidatable,
            current_price=observed_price,
            margin=position.margin,
            position_size=position.abs_size,
            is_long=position.is_long,
            estimated_profit=estimated_profit,
            market_id=position.market_id,
        )
