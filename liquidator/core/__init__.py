"""
Liquidation Engine
==================

Scan -> evaluate -> rank -> execute pipeline and the loop that drives it.
"""

from .scanner import PositionScanner
from .evaluator import HealthEvaluator, estimate_liquidation_profit
from .ranker import rank
from .executor import BatchExecutor
from .configuration import ConfigurationManager
from .bot import BotState, LiquidationBot
from .risk_report import RiskLevel, analyze_risks, classify_risk, format_risk_report

__all__ = [
    "PositionScanner",
    "HealthEvaluator",
    "estimate_liquidation_profit",
    "rank",
    "BatchExecutor",
    "ConfigurationManager",
    "BotState",
    "LiquidationBot",
    "RiskLevel",
    "analyze_risks",
    "classify_risk",
    "format_risk_report",
]
