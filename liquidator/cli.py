"""
Liquidator CLI
==============

Usage:
    liquidator                      # Start the monitoring loop
    liquidator manual 42            # Check and liquidate position #42, then exit
    liquidator scan                 # Print a read-only risk report
    liquidator --configure-only     # Ensure liquidation parameters, then exit
    liquidator --dry-run            # Print alerts to console instead of Telegram
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .alerts import TelegramAlerts
from .api.errors import ConfigurationError
from .api.price_feed import PriceFeedClient
from .api.web3_ledger import Web3LedgerClient
from .config import Config, config
from .core.bot import LiquidationBot
from .core.configuration import ConfigurationManager
from .core.risk_report import analyze_risks, format_risk_report
from .core.scanner import PositionScanner

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = config.log_level, log_file: Path = config.log_file):
    """Configure root logging: date-stamped file plus stdout."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # e.g. logs/liquidator_2026-01-18.log
    date_str = datetime.now().strftime("%Y-%m-%d")
    dated_log_file = log_path.parent / f"{log_path.stem}_{date_str}{log_path.suffix}"

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    file_handler = logging.FileHandler(dated_log_file)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from HTTP and RPC libraries
    for name in ("urllib3", "requests", "web3", "aiohttp"):
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging to: {dated_log_file}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="liquidator",
        description="Perpetual position liquidation bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  liquidator                    # Start the monitoring loop
  liquidator manual 42          # Check/liquidate a single position
  liquidator scan               # Risk report, no transactions
  liquidator --configure-only   # Set up liquidation parameters and exit
        """
    )
    parser.add_argument(
        "mode",
        nargs="?",
        choices=["run", "manual", "scan"],
        default="run",
        help="run (default), manual <token_id>, or scan"
    )
    parser.add_argument(
        "token_id",
        nargs="?",
        type=int,
        help="Position id for manual mode"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=config.scan_interval_sec,
        help=f"Seconds between cycles (default: {config.scan_interval_sec:g})"
    )
    parser.add_argument(
        "--max-token-id",
        type=int,
        default=config.max_token_id,
        help=f"Highest position id to scan (default: {config.max_token_id})"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print alerts to console instead of sending to Telegram"
    )
    parser.add_argument(
        "--configure-only",
        action="store_true",
        help="Ensure liquidation parameters are active, then exit"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=config.log_level,
        help=f"Log level (default: {config.log_level})"
    )
    return parser


def build_ledger(cfg: Config) -> Web3LedgerClient:
    return Web3LedgerClient(
        rpc_url=cfg.rpc_url,
        private_key=cfg.private_key,
        position_manager=cfg.position_manager_address,
        liquidation_engine=cfg.liquidation_engine_address,
        chain_id=cfg.chain_id,
        rpc_timeout=cfg.rpc_timeout_sec,
        confirmation_timeout=cfg.confirmation_timeout_sec,
    )


def build_price_feed(cfg: Config) -> PriceFeedClient:
    return PriceFeedClient(
        url=cfg.price_feed_url,
        feed_id=cfg.price_feed_id,
        fallback_price=cfg.fallback_price,
        timeout=cfg.price_timeout_sec,
    )


async def run_scan(ledger, cfg: Config) -> int:
    """Print the risk report for ids 1..max_token_id."""
    liquidation_config = None
    try:
        liquidation_config = await ledger.get_liquidation_config(cfg.market_id)
    except Exception as e:
        logger.warning(f"Could not read liquidation config: {e}")

    open_ids = await PositionScanner(ledger, cfg.max_concurrent_reads).scan(cfg.max_token_id)
    print(f"\nFound {len(open_ids)} open positions (ids 1-{cfg.max_token_id})\n")

    risks = await analyze_risks(ledger, open_ids, cfg.max_concurrent_reads)
    for line in format_risk_report(risks, liquidation_config):
        print(line)
    return 0


async def run_async(args: argparse.Namespace, cfg: Config) -> int:
    ledger = build_ledger(cfg)
    price_feed = build_price_feed(cfg)

    try:
        if args.mode == "scan":
            return await run_scan(ledger, cfg)

        if ledger.address is None:
            print("\nERROR: PRIVATE_KEY not set!")
            print("Set it in .env or the environment to send liquidation transactions.")
            return 1
        logger.info(f"Liquidator address: {ledger.address}")

        if args.configure_only:
            result = await ConfigurationManager(ledger, cfg).ensure_configured(cfg.market_id)
            for line in result.describe():
                print(line)
            return 0

        alerts = TelegramAlerts.from_env(dry_run=args.dry_run)
        bot = LiquidationBot(ledger, price_feed, cfg=cfg, alerts=alerts)

        if args.mode == "manual":
            await bot.check_and_liquidate(args.token_id)
            return 0

        await bot.run()
        return 0

    except ConfigurationError as e:
        logger.error(f"Liquidation configuration failed: {e}")
        return 1
    finally:
        await price_feed.close()
        await ledger.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.mode == "manual" and args.token_id is None:
        parser.error("manual mode requires a token_id")

    cfg = dataclasses.replace(
        config,
        scan_interval_sec=args.interval,
        max_token_id=args.max_token_id,
        log_level=args.log_level,
    )

    setup_logging(cfg.log_level, cfg.log_file)

    try:
        return asyncio.run(run_async(args, cfg))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
