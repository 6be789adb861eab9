"""
Risk Report
===========

Read-only liquidation risk scan. Lists open positions by risk level so an
operator can see what the bot will act on next. Never sends transactions.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..api.ledger import LedgerClient
from ..models import LiquidationConfig, Position

logger = logging.getLogger(__name__)

DANGER_HEALTH_FACTOR = 1.1
WARNING_HEALTH_FACTOR = 1.5


class RiskLevel(Enum):
    LIQUIDATABLE = 0
    DANGER = 1
    WARNING = 2
    SAFE = 3


def classify_risk(is_liquidatable: bool, health_factor: float) -> RiskLevel:
    if is_liquidatable:
        return RiskLevel.LIQUIDATABLE
    if health_factor < DANGER_HEALTH_FACTOR:
        return RiskLevel.DANGER
    if health_factor < WARNING_HEALTH_FACTOR:
        return RiskLevel.WARNING
    return RiskLevel.SAFE


@dataclass(frozen=True)
class PositionRisk:
    position: Position
    health_factor: float
    is_liquidatable: bool
    current_price: float
    risk: RiskLevel

    @property
    def token_id(self) -> int:
        return self.position.token_id

    @property
    def unrealized_pnl(self) -> float:
        return self.position.unrealized_pnl(self.current_price)


async def analyze_risks(
    ledger: LedgerClient,
    token_ids: List[int],
    max_concurrent: int = 5,
) -> List[PositionRisk]:
    """
    Read position detail and liquidatability for each id.

    Unreadable or closed positions are left out.

    Returns:
        Risks sorted by level (liquidatable first), then health factor ascending
    """
    semaphore = asyncio.Semaphore(max_concurrent)

    async def analyze(token_id: int) -> Optional[PositionRisk]:
        async with semaphore:
            try:
                position = await ledger.get_position(token_id)
                if not position.is_open:
                    return None
                liquidatable, price, health_factor = await ledger.is_liquidatable(token_id)
            except Exception as e:
                logger.error(f"Error analyzing position {token_id}: {e}")
                return None

        return PositionRisk(
            position=position,
            health_factor=health_factor,
            is_liquidatable=liquidatable,
            current_price=price,
            risk=classify_risk(liquidatable, health_factor),
        )

    results = await asyncio.gather(*[analyze(t) for t in token_ids])
    risks = [r for r in results if r is not None]
    risks.sort(key=lambda r: (r.risk.value, r.health_factor))
    return risks


def format_risk_report(
    risks: List[PositionRisk],
    liquidation_config: Optional[LiquidationConfig] = None,
) -> List[str]:
    """Render the scan as printable lines."""
    lines = ["LIQUIDATION RISK ANALYSIS", "=" * 60]

    if liquidation_config is not None:
        lines.extend(liquidation_config.describe())
        if not liquidation_config.is_active:
            lines.append("WARNING: Liquidations are not active for this market!")
        lines.append("")

    for level in RiskLevel:
        count = sum(1 for r in risks if r.risk is level)
        lines.append(f"{level.name:<13} {count}")
    lines.append("")

    for r in risks:
        if r.risk is RiskLevel.SAFE:
            continue
        p = r.position
        lines.append(f"[{r.risk.name}] Position #{p.token_id} ({'LONG' if p.is_long else 'SHORT'})")
        lines.append(f"   Owner:          {p.owner}")
        lines.append(f"   Health Factor:  {r.health_factor:.3f}")
        lines.append(f"   Size:           {p.abs_size:.4f}")
        lines.append(f"   Margin:         {p.margin:.2f} USDC")
        lines.append(f"   Entry Price:    {p.entry_price:,.2f}")
        lines.append(f"   Current Price:  {r.current_price:,.2f}")
        lines.append(f"   Unrealized PnL: {r.unrealized_pnl:,.2f} USDC")
        if r.risk is RiskLevel.LIQUIDATABLE:
            lines.append(f"   Action: liquidator manual {p.token_id}")
        lines.append("")

    return lines
