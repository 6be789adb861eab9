"""
Shared Data Models
==================

This package contains dataclasses used across the project.
"""

from .position import Position, PositionHealth
from .liquidation import (
    LiquidationConfig,
    ErrorKind,
    ExecutionResult,
    BotStatistics,
)

__all__ = [
    "Position",
    "PositionHealth",
    "LiquidationConfig",
    "ErrorKind",
    "ExecutionResult",
    "BotStatistics",
]
