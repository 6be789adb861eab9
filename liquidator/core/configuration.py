"""
Configuration Manager

Makes sure the liquidation engine has active parameters for the market
before the monitoring loop starts.
"""

import asyncio
import logging
from typing import Optional

from ..api.errors import ConfigurationError, LedgerError
from ..api.ledger import LedgerClient
from ..config import Config, config as default_config
from ..models import LiquidationConfig

logger = logging.getLogger(__name__)


class ConfigurationManager:
    """
    Idempotent startup check of liquidation parameters.

    Writes the default parameters only when the market is inactive or has
    a zero maintenance margin ratio. Raises ConfigurationError when the
    parameters cannot be read or written after all retries.
    """

    def __init__(self, ledger: LedgerClient, cfg: Config = None, backoff_sec: float = None):
        self.ledger = ledger
        self.config = cfg or default_config
        self.backoff_sec = backoff_sec if backoff_sec is not None else self.config.retry_backoff_sec

    async def ensure_configured(self, market_id: str) -> LiquidationConfig:
        """
        Ensure the market has active liquidation parameters.

        Args:
            market_id: Market (pool) identifier

        Returns:
            The active LiquidationConfig
        """
        logger.info("Checking liquidation configuration...")
        current = await self._with_retries("read liquidation config", self.ledger.get_liquidation_config, market_id)

        if current is not None and not current.needs_setup:
            logger.info("Liquidation configuration already active")
            for line in current.describe():
                logger.info(f"  {line}")
            return current

        logger.info("Setting up liquidation configuration...")
        desired = LiquidationConfig(
            maintenance_margin_bps=self.config.default_maintenance_margin_bps,
            liquidation_fee_bps=self.config.default_liquidation_fee_bps,
            insurance_fee_bps=self.config.default_insurance_fee_bps,
            is_active=True,
        )
        receipt = await self._with_retries(
            "write liquidation config",
            self.ledger.set_liquidation_config,
            market_id,
            desired.maintenance_margin_bps,
            desired.liquidation_fee_bps,
            desired.insurance_fee_bps,
            True,
        )
        logger.info(f"Liquidation configuration set up successfully (tx {receipt.tx_hash})")
        return desired

    async def _with_retries(self, action: str, func, *args):
        attempts = max(1, self.config.config_write_retries)
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                return await func(*args)
            except (LedgerError, asyncio.TimeoutError, OSError) as e:
                last_error = e
                logger.warning(f"Failed to {action} (attempt {attempt}/{attempts}): {e}")
                if attempt < attempts:
                    await asyncio.sleep(attempt * self.backoff_sec)

        raise ConfigurationError(f"Could not {action} after {attempts} attempts: {last_error}")
