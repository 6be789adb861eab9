"""
Batch Executor

Submits liquidations for ranked candidates:
- Groups of at most max_concurrent run in parallel
- Groups run strictly one after another, with a cool-down between them
- Each member retries on retryable failures with linear backoff
- Statistics are folded once per settled group
"""

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from ..api.errors import error_kind
from ..api.ledger import LedgerClient
from ..config import Config, config as default_config
from ..models import BotStatistics, ExecutionResult, PositionHealth

logger = logging.getLogger(__name__)


def partition(items: Sequence, size: int) -> List[list]:
    """Split into consecutive chunks of at most `size`."""
    size = max(1, size)
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchExecutor:
    """
    Executes liquidations with bounded concurrency and retries.

    At most max_concurrent transactions are in flight at any time because
    a group must fully settle before the next one starts.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        cfg: Config = None,
        backoff_sec: float = None,
        cooldown_sec: float = None,
        attempt_timeout: float = None,
    ):
        self.ledger = ledger
        self.config = cfg or default_config
        self.backoff_sec = backoff_sec if backoff_sec is not None else self.config.retry_backoff_sec
        self.cooldown_sec = cooldown_sec if cooldown_sec is not None else self.config.batch_cooldown_sec
        self.attempt_timeout = attempt_timeout or self.config.attempt_timeout_sec
        self._sleep = asyncio.sleep

    async def execute(
        self,
        ranked: Sequence[PositionHealth],
        max_concurrent: int = None,
        max_retries: int = None,
        stats: Optional[BotStatistics] = None,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> List[ExecutionResult]:
        """
        Liquidate ranked candidates group by group.

        Args:
            ranked: Candidates, most profitable first
            max_concurrent: Group size (default from config)
            max_retries: Total attempts per position (default from config)
            stats: Folded after each group settles, if given
            should_continue: Checked before each group; False stops launching
                new groups (in-flight groups always finish)

        Returns:
            One ExecutionResult per attempted candidate, in ranked order
        """
        max_concurrent = max_concurrent or self.config.max_concurrent_liquidations
        max_retries = max_retries or self.config.max_retries

        groups = partition(ranked, max_concurrent)
        results: List[ExecutionResult] = []

        for index, group in enumerate(groups):
            if should_continue is not None and not should_continue():
                skipped = sum(len(g) for g in groups[index:])
                logger.info(f"Shutdown requested, skipping {skipped} remaining candidates")
                break

            logger.info(f"Executing liquidation batch of {len(group)} positions...")
            group_results = await asyncio.gather(
                *[self.liquidate_with_retry(health, max_retries) for health in group]
            )
            results.extend(group_results)

            if stats is not None:
                stats.record_results(group_results)

            if index < len(groups) - 1 and self.cooldown_sec > 0:
                await self._sleep(self.cooldown_sec)

        return results

    async def liquidate_with_retry(self, health: PositionHealth, max_retries: int = None) -> ExecutionResult:
        """
        Liquidate one position, retrying retryable failures.

        Attempt n failing with a retryable error waits n * backoff before
        attempt n + 1. Not-liquidatable / not-found end immediately.

        Returns:
            ExecutionResult; never raises except on cancellation
        """
        max_retries = max(1, max_retries or self.config.max_retries)
        token_id = health.token_id
        attempts = 0
        last_error: Optional[str] = None
        last_kind = None

        while attempts < max_retries:
            attempts += 1
            logger.info(f"Liquidating position #{token_id} (attempt {attempts}/{max_retries})")

            try:
                receipt = await asyncio.wait_for(self.ledger.liquidate(token_id), self.attempt_timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_kind = error_kind(e)
                last_error = str(e) or type(e).__name__

                if not last_kind.retryable:
                    logger.info(f"Position #{token_id} not liquidated ({last_kind.value}): {last_error}")
                    return ExecutionResult(
                        token_id=token_id,
                        success=False,
                        attempts=attempts,
                        error=last_error,
                        error_kind=last_kind,
                    )

                logger.warning(f"Liquidation attempt {attempts} failed for position {token_id}: {last_error}")
                if attempts < max_retries:
                    await self._sleep(attempts * self.backoff_sec)
                continue

            logger.info(
                f"Position #{token_id} liquidated successfully! "
                f"Estimated profit: {health.estimated_profit:.3f} USDC (tx {receipt.tx_hash})"
            )
            return ExecutionResult(
                token_id=token_id,
                success=True,
                attempts=attempts,
                profit=health.estimated_profit,
                tx_hash=receipt.tx_hash,
            )

        logger.error(f"Failed to liquidate position {token_id} after {attempts} attempts: {last_error}")
        return ExecutionResult(
            token_id=token_id,
            success=False,
            attempts=attempts,
            error=last_error,
            error_kind=last_kind,
        )
