"""
Liquidation Bot
===============

Monitoring loop for the liquidation engine.

Each cycle:
1. Fetch the reference price (fallback on failure)
2. Scan position ids 1..max_token_id for open positions
3. Evaluate health and estimated profit
4. Rank profitable liquidatable positions
5. Execute liquidations in bounded groups, folding statistics per group

The loop runs until SIGINT/SIGTERM. A shutdown request lets the group in
flight finish, starts no new group or cycle, and prints the final summary
once.
"""

import asyncio
import logging
import signal
from enum import Enum
from typing import Dict, List, Optional

from ..alerts import TelegramAlerts
from ..api.ledger import LedgerClient
from ..api.price_feed import PriceFeedClient
from ..config import Config, config as default_config
from ..models import BotStatistics, ExecutionResult, PositionHealth
from .configuration import ConfigurationManager
from .evaluator import HealthEvaluator
from .executor import BatchExecutor
from .ranker import rank
from .scanner import PositionScanner

logger = logging.getLogger(__name__)


class BotState(Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class LiquidationBot:
    """
    Scan -> evaluate -> rank -> execute, forever, until stopped.

    Owns the BotStatistics for the process lifetime. The manual
    check_and_liquidate path shares the collaborators but never touches
    loop state or statistics.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        price_feed: PriceFeedClient,
        cfg: Config = None,
        alerts: Optional[TelegramAlerts] = None,
        market_id: Optional[str] = None,
        install_signal_handlers: bool = True,
    ):
        """
        Initialize the bot.

        Args:
            ledger: Ledger client used for all reads and writes
            price_feed: Reference price source
            cfg: Config (default: global config)
            alerts: Optional Telegram alerts
            market_id: Market to configure (default: config.market_id)
            install_signal_handlers: Hook SIGINT/SIGTERM to request_stop
        """
        self.ledger = ledger
        self.price_feed = price_feed
        self.config = cfg or default_config
        self.alerts = alerts
        self._market_id = market_id
        self._install_handlers = install_signal_handlers

        self.scanner = PositionScanner(ledger, max_concurrent=self.config.max_concurrent_reads)
        self.evaluator = HealthEvaluator(ledger, cfg=self.config)
        self.executor = BatchExecutor(ledger, cfg=self.config)
        self.configurator = ConfigurationManager(ledger, cfg=self.config)

        self.stats = BotStatistics(max_errors=self.config.max_recent_errors)
        self.state = BotState.STOPPED
        self._stop_event: Optional[asyncio.Event] = None
        self._summary_printed = False
        self._signals_installed: List[signal.Signals] = []
        self._previous_handlers: Dict[signal.Signals, object] = {}

    @property
    def running(self) -> bool:
        return self.state == BotState.RUNNING

    @property
    def market_id(self) -> str:
        return self._market_id or self.config.market_id

    def request_stop(self):
        """Transition to STOPPED. In-flight work finishes, nothing new starts."""
        if self.running:
            logger.info("Shutdown signal received, stopping after current batch...")
        self.state = BotState.STOPPED
        if self._stop_event is not None:
            self._stop_event.set()

    # -------------------------------------------------------------------------
    # Monitoring loop
    # -------------------------------------------------------------------------

    async def run(self):
        """
        Main entry point - configure the market, then loop until stopped.

        Raises:
            ConfigurationError: liquidation parameters could not be confirmed
        """
        self._print_banner()
        await self.configurator.ensure_configured(self.market_id)

        self.state = BotState.RUNNING
        self._stop_event = asyncio.Event()
        if self._install_handlers:
            self._add_signal_handlers()

        if self.alerts:
            self.alerts.send_service_status(
                "started",
                f"Scanning ids 1-{self.config.max_token_id} every {self.config.scan_interval_sec:g}s",
            )

        try:
            while self.running:
                try:
                    await self.run_cycle()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.exception(f"Error in liquidation cycle: {e}")
                    self.stats.record_error(f"Cycle error: {e}")

                if not self.running:
                    break
                await self._wait_interval()
        finally:
            self.state = BotState.STOPPED
            self._remove_signal_handlers()
            self.print_summary()
            if self.alerts:
                self.alerts.send_service_status(
                    "stopped",
                    f"Liquidations: {self.stats.successful_liquidations} ok / "
                    f"{self.stats.failed_liquidations} failed",
                )

    async def run_cycle(self) -> List[ExecutionResult]:
        """
        Run one scan -> evaluate -> rank -> execute cycle.

        Returns:
            Execution results for this cycle (empty if nothing was attempted)
        """
        logger.info("Scanning for liquidatable positions...")

        ref_price = await self.price_feed.fetch_reference_price()
        open_ids = await self.scanner.scan(self.config.max_token_id)
        healths = await self.evaluator.evaluate(open_ids, ref_price)
        candidates = rank(healths, self.config.profit_threshold)

        self.stats.record_scan(len(open_ids), len(candidates))
        logger.info(
            f"Found {len(candidates)} liquidatable positions out of {len(open_ids)} open "
            f"(price {ref_price:,.2f})"
        )

        results: List[ExecutionResult] = []
        if candidates:
            results = await self.executor.execute(
                candidates,
                stats=self.stats,
                should_continue=lambda: self.running,
            )
            self._notify(results, candidates)

        self._log_progress(results)
        return results

    async def _wait_interval(self):
        # Returns early when request_stop sets the event
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.config.scan_interval_sec)
        except asyncio.TimeoutError:
            pass

    def _add_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
                self._signals_installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # Windows event loops, or not running in the main thread
                try:
                    self._previous_handlers[sig] = signal.signal(
                        sig, lambda signum, frame: loop.call_soon_threadsafe(self.request_stop)
                    )
                except ValueError:
                    logger.debug(f"Cannot install handler for {sig.name}")

    def _remove_signal_handlers(self):
        if self._signals_installed:
            loop = asyncio.get_running_loop()
            for sig in self._signals_installed:
                loop.remove_signal_handler(sig)
            self._signals_installed = []

        for sig, previous in self._previous_handlers.items():
            signal.signal(sig, previous)
        self._previous_handlers = {}

    def _notify(self, results: List[ExecutionResult], candidates: List[PositionHealth]):
        if not self.alerts:
            return
        by_id: Dict[int, PositionHealth] = {h.token_id: h for h in candidates}
        for result in results:
            if result.success:
                self.alerts.send_liquidation_alert_async(result, by_id[result.token_id])
            elif result.is_anomaly:
                self.alerts.send_failure_alert_async(result)

    def _log_progress(self, results: List[ExecutionResult]):
        succeeded = sum(1 for r in results if r.success)
        failed = len(results) - succeeded
        logger.info(
            f"Cycle {self.stats.cycles}: scanned={self.stats.total_scanned} "
            f"found={self.stats.liquidatable_found} "
            f"succeeded={succeeded} failed={failed} | "
            f"totals ok={self.stats.successful_liquidations} "
            f"failed={self.stats.failed_liquidations} "
            f"profit={self.stats.total_profit:.6f} USDC"
        )

    def _print_banner(self):
        print("\n" + "=" * 60)
        print("LIQUIDATION BOT")
        print("=" * 60)
        print(f"Scan interval:      {self.config.scan_interval_sec:g} seconds")
        print(f"Max token id:       {self.config.max_token_id}")
        print(f"Max concurrent:     {self.config.max_concurrent_liquidations}")
        print(f"Max retries:        {self.config.max_retries}")
        print(f"Profit threshold:   {self.config.profit_threshold} USDC")
        print("=" * 60)

    def print_summary(self):
        """Print final statistics. Only the first call prints."""
        if self._summary_printed:
            return
        self._summary_printed = True

        print("\n" + "=" * 60)
        print("LIQUIDATION BOT STATISTICS")
        print("=" * 60)
        for line in self.stats.summary_lines(self.config.summary_error_count):
            print(line)
        print("=" * 60)

    # -------------------------------------------------------------------------
    # Manual single-position path
    # -------------------------------------------------------------------------

    async def check_and_liquidate(self, token_id: int) -> Optional[ExecutionResult]:
        """
        Check one position and liquidate it if eligible.

        Bypasses scan and rank. Does not change loop state or statistics.

        Args:
            token_id: Position id

        Returns:
            ExecutionResult if a liquidation was attempted, None otherwise
        """
        print(f"\nChecking position #{token_id}...")

        ref_price = await self.price_feed.fetch_reference_price()
        health = await self.evaluator.evaluate_one(token_id, ref_price)

        if health is None:
            print(f"Position #{token_id} not found, closed, or unreadable")
            return None

        print(f"Health Factor:    {health.health_factor:.4f}")
        print(f"Liquidatable:     {'YES' if health.is_liquidatable else 'NO'}")
        print(f"Current Price:    {health.current_price:,.2f}")
        print(f"Position:         {health.side.upper()} {health.position_size:,.6f}")
        print(f"Estimated Profit: {health.estimated_profit:.6f} USDC")

        if not health.is_liquidatable:
            print("Position is healthy, nothing to do")
            return None

        results = await self.executor.execute([health], max_concurrent=1)
        result = results[0]

        if result.success:
            print(f"Liquidated #{token_id} after {result.attempts} attempt(s) (tx {result.tx_hash})")
        else:
            print(f"Liquidation of #{token_id} failed after {result.attempts} attempt(s): {result.error}")
        return result
