#!/usr/bin/env python3
"""
Health check script for the liquidation bot.

Returns exit code 0 if healthy, non-zero otherwise.
Suitable for a process supervisor or cron liveness probe.

Checks:
1. RPC connectivity
2. Liquidation configuration active for the market
3. Price feed reachable (fallback price counts as a warning)
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from liquidator.cli import build_ledger, build_price_feed
from liquidator.config import config


async def check_health() -> bool:
    """
    Perform health checks.

    Returns:
        True if healthy, False otherwise
    """
    ledger = build_ledger(config)
    price_feed = build_price_feed(config)

    try:
        # Check 1: RPC connectivity
        if not await ledger.is_connected():
            print(f"FAIL: RPC not reachable at {config.rpc_url}")
            return False

        # Check 2: Liquidation configuration
        try:
            liquidation_config = await ledger.get_liquidation_config(config.market_id)
        except Exception as e:
            print(f"FAIL: Could not read liquidation config: {e}")
            return False

        if liquidation_config is None or liquidation_config.needs_setup:
            print("FAIL: Liquidation configuration not active (run liquidator --configure-only)")
            return False

        # Check 3: Price feed
        price = await price_feed.fetch_reference_price()
        if price_feed.last_price_was_fallback:
            print(f"WARN: Price feed unavailable, using fallback {price:,.2f}")
        else:
            print(f"OK: Price feed {price:,.2f}")

        print(
            f"OK: RPC connected, liquidation active "
            f"(fee {liquidation_config.liquidation_fee_bps} bps)"
        )
        return True
    finally:
        await price_feed.close()
        await ledger.close()


def main():
    """Run health check and exit with appropriate code."""
    try:
        healthy = asyncio.run(check_health())
        sys.exit(0 if healthy else 1)
    except Exception as e:
        print(f"FAIL: Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
