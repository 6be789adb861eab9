"""
Liquidation Models
==================

Liquidation parameters, execution outcomes and process-lifetime statistics.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Iterable, List, Optional

from ..utils.units import bps_to_fraction


@dataclass(frozen=True)
class LiquidationConfig:
    """Per-market liquidation parameters, rates in basis points."""
    maintenance_margin_bps: int
    liquidation_fee_bps: int
    insurance_fee_bps: int
    is_active: bool

    @property
    def liquidation_fee_rate(self) -> float:
        return bps_to_fraction(self.liquidation_fee_bps)

    @property
    def needs_setup(self) -> bool:
        """Inactive or zero maintenance margin ratio."""
        return not self.is_active or self.maintenance_margin_bps == 0

    def describe(self) -> List[str]:
        return [
            f"Maintenance Margin Ratio: {self.maintenance_margin_bps / 100:g}%",
            f"Liquidation Fee Rate: {self.liquidation_fee_bps / 100:g}%",
            f"Insurance Fee Rate: {self.insurance_fee_bps / 100:g}%",
            f"Active: {self.is_active}",
        ]


class ErrorKind(Enum):
    """Classification of a failed ledger call."""
    NOT_LIQUIDATABLE = "not_liquidatable"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.TRANSIENT, ErrorKind.UNKNOWN)

    @property
    def expected(self) -> bool:
        """Normal domain outcome (competitor won, health improved, position gone)."""
        return self in (ErrorKind.NOT_LIQUIDATABLE, ErrorKind.NOT_FOUND)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one liquidation (all attempts for one position)."""
    token_id: int
    success: bool
    attempts: int
    profit: float = 0.0
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    tx_hash: Optional[str] = None

    @property
    def is_anomaly(self) -> bool:
        """Failed for a reason other than an expected domain outcome."""
        if self.success:
            return False
        return self.error_kind is None or not self.error_kind.expected


@dataclass
class BotStatistics:
    """
    Running totals for the process lifetime.

    Counters only grow. Folded by the monitoring loop after each scan and
    by the batch executor after each execution group settles.
    """
    total_scanned: int = 0
    liquidatable_found: int = 0
    successful_liquidations: int = 0
    failed_liquidations: int = 0
    total_profit: float = 0.0
    cycles: int = 0
    max_errors: int = 50
    errors: Deque[str] = field(default_factory=deque)

    def __post_init__(self):
        self.errors = deque(self.errors, maxlen=self.max_errors)

    @property
    def attempted_liquidations(self) -> int:
        return self.successful_liquidations + self.failed_liquidations

    def record_scan(self, scanned: int, found: int):
        self.cycles += 1
        self.total_scanned += scanned
        self.liquidatable_found += found

    def record_results(self, results: Iterable[ExecutionResult]):
        """Fold a settled group of execution results."""
        for result in results:
            if result.success:
                self.successful_liquidations += 1
                self.total_profit += result.profit
            else:
                self.failed_liquidations += 1
                if result.is_anomaly and result.error:
                    self.record_error(f"#{result.token_id}: {result.error}")

    def record_error(self, message: str):
        self.errors.append(message[:100])

    def recent_errors(self, count: int = 5) -> List[str]:
        return list(self.errors)[-count:]

    def summary_lines(self, error_count: int = 5) -> List[str]:
        lines = [
            f"Cycles Completed: {self.cycles}",
            f"Total Positions Scanned: {self.total_scanned}",
            f"Liquidatable Positions Found: {self.liquidatable_found}",
            f"Successful Liquidations: {self.successful_liquidations}",
            f"Failed Liquidations: {self.failed_liquidations}",
            f"Total Profit Earned: {self.total_profit:.6f} USDC",
        ]
        recent = self.recent_errors(error_count)
        if recent:
            lines.append("Recent Errors:")
            lines.extend(f"  - {e}" for e in recent)
        return lines
