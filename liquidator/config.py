"""
Configuration for the Perp Liquidator

All settings in one place for easy tuning.
Deployment values and secrets come from the environment (.env supported).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import os

from dotenv import load_dotenv

_project_root = Path(__file__).parent.parent
_env_path = _project_root / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


# Unichain Sepolia deployment
UNICHAIN_SEPOLIA = 1301

DEFAULT_CONTRACTS = {
    "position_manager": "0xcFe240bE5C918d18DaC233DA08C9a3b71Adf7D18",
    "liquidation_engine": "0x877A9334ca7323544065FCed5a351b7D057Cf826",
    "perps_hook": "0xca17bc76e3882Dc2df766D9A1b6690a57449Dac8",
    "mock_usdc": "0x022d625B4B8dcA331afdE3879A2FD1A5b66239e1",
    "mock_veth": "0x8CB741567B4dEaE5c78A9ca9284b6B807974f72f",
}

# Pyth ETH/USD price feed
PYTH_ETH_USD_FEED_ID = "0xff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace"


@dataclass
class Config:
    """All configuration settings."""

    # -------------------------------------------------------------------------
    # Monitoring Loop
    # -------------------------------------------------------------------------
    scan_interval_sec: float = 30.0

    # Upper bound of the token id probe (the registry cannot enumerate)
    max_token_id: int = 100

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------
    max_concurrent_liquidations: int = 10

    # Total attempts per liquidation (initial attempt included)
    max_retries: int = 3

    # Retry n waits n * retry_backoff_sec
    retry_backoff_sec: float = 1.0

    # Pause between execution groups (only when there is more than one)
    batch_cooldown_sec: float = 2.0

    # Minimum estimated profit (quote units, USDC) to attempt a liquidation
    profit_threshold: float = 0.1

    # -------------------------------------------------------------------------
    # Profit Estimation
    # -------------------------------------------------------------------------
    assumed_gas_price_gwei: float = 20.0
    assumed_gas_limit: int = 300_000

    # gwei per native unit
    gas_unit_scale: float = 1e9

    # -------------------------------------------------------------------------
    # Price Feed
    # -------------------------------------------------------------------------
    price_feed_url: str = "https://hermes.pyth.network/api/latest_price_feeds"
    price_feed_id: str = PYTH_ETH_USD_FEED_ID
    fallback_price: float = 4000.0
    price_timeout_sec: float = 10.0

    # -------------------------------------------------------------------------
    # Ledger Calls
    # -------------------------------------------------------------------------
    rpc_timeout_sec: float = 30.0
    confirmation_timeout_sec: float = 120.0

    # Upper bound for one submit + confirm attempt
    attempt_timeout_sec: float = 180.0

    # Concurrent reads while scanning / evaluating
    max_concurrent_reads: int = 5

    # -------------------------------------------------------------------------
    # Default Liquidation Parameters (basis points)
    # -------------------------------------------------------------------------
    default_maintenance_margin_bps: int = 500   # 5%
    default_liquidation_fee_bps: int = 250      # 2.5%
    default_insurance_fee_bps: int = 250        # 2.5%

    config_write_retries: int = 3

    # -------------------------------------------------------------------------
    # Market (Uniswap v4 pool key)
    # -------------------------------------------------------------------------
    pool_fee: int = 3000
    pool_tick_spacing: int = 60

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------
    max_recent_errors: int = 50
    summary_error_count: int = 5

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: str = "INFO"
    log_file: Path = field(default_factory=lambda: _project_root / "logs" / "liquidator.log")

    # -------------------------------------------------------------------------
    # Deployment (from environment)
    # -------------------------------------------------------------------------
    @property
    def rpc_url(self) -> str:
        return (
            os.environ.get("RPC_URL")
            or os.environ.get("UNICHAIN_SEPOLIA_RPC_URL")
            or "https://sepolia.unichain.org"
        )

    @property
    def chain_id(self) -> int:
        return int(os.environ.get("CHAIN_ID", UNICHAIN_SEPOLIA))

    @property
    def private_key(self) -> Optional[str]:
        key = os.environ.get("PRIVATE_KEY", "")
        if not key:
            return None
        return key if key.startswith("0x") else f"0x{key}"

    @property
    def position_manager_address(self) -> str:
        return os.environ.get("POSITION_MANAGER_ADDRESS", DEFAULT_CONTRACTS["position_manager"])

    @property
    def liquidation_engine_address(self) -> str:
        return os.environ.get("LIQUIDATION_ENGINE_ADDRESS", DEFAULT_CONTRACTS["liquidation_engine"])

    @property
    def market_id(self) -> str:
        """Market identifier: MARKET_ID if set, else the pool id of the default pool key."""
        explicit = os.environ.get("MARKET_ID")
        if explicit:
            return explicit

        from .utils.units import compute_pool_id

        return compute_pool_id(
            DEFAULT_CONTRACTS["mock_veth"],
            DEFAULT_CONTRACTS["mock_usdc"],
            self.pool_fee,
            self.pool_tick_spacing,
            DEFAULT_CONTRACTS["perps_hook"],
        )

    # -------------------------------------------------------------------------
    # Telegram Settings (from environment)
    # -------------------------------------------------------------------------
    @property
    def telegram_bot_token(self) -> Optional[str]:
        return os.environ.get("TELEGRAM_BOT_TOKEN")

    @property
    def telegram_chat_id(self) -> Optional[str]:
        return os.environ.get("TELEGRAM_CHAT_ID")

    # -------------------------------------------------------------------------
    # Helper Methods
    # -------------------------------------------------------------------------

    def gas_cost_estimate(self, ref_price: float) -> float:
        """Estimated cost of one liquidation transaction in quote units."""
        return (
            self.assumed_gas_price_gwei * self.assumed_gas_limit * ref_price
            / self.gas_unit_scale
        )


# Global config instance
config = Config()
