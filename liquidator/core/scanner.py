"""
Position Scanner

Finds open positions by probing token ids 1..max_id. The registry has no
enumeration call, so max_id is a hard bound on what can be seen.
"""

import asyncio
import logging
from typing import List, Optional

from ..api.ledger import LedgerClient
from ..config import config

logger = logging.getLogger(__name__)


class PositionScanner:
    """
    Probes the position registry for open positions.

    A failed read (missing position or RPC error) skips that id; the next
    cycle sees it again. No retries here.
    """

    def __init__(self, ledger: LedgerClient, max_concurrent: int = None):
        self.ledger = ledger
        self.max_concurrent = max_concurrent or config.max_concurrent_reads

    async def scan(self, max_id: Optional[int] = None) -> List[int]:
        """
        Find open positions.

        Args:
            max_id: Highest token id to probe (default from config)

        Returns:
            Ascending list of token ids with an owner and non-zero size
        """
        max_id = max_id if max_id is not None else config.max_token_id
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def probe(token_id: int) -> Optional[int]:
            async with semaphore:
                try:
                    position = await self.ledger.get_position(token_id)
                except Exception as e:
                    logger.debug(f"Skipping token {token_id}: {e}")
                    return None
            return token_id if position.is_open else None

        found = await asyncio.gather(*[probe(i) for i in range(1, max_id + 1)])
        active = [token_id for token_id in found if token_id is not None]

        logger.debug(f"Scanned ids 1..{max_id}, {len(active)} open")
        return active
