"""
Liquidation Ranker

Selects liquidation candidates and orders them most profitable first.
"""

from typing import Iterable, List

from ..models import PositionHealth


def is_candidate(health: PositionHealth, profit_floor: float) -> bool:
    """Liquidatable and expected to clear the profit floor."""
    return health.is_liquidatable and health.estimated_profit >= profit_floor


def rank(healths: Iterable[PositionHealth], profit_floor: float) -> List[PositionHealth]:
    """
    Filter and order liquidation candidates.

    Args:
        healths: Evaluated positions (not modified)
        profit_floor: Minimum estimated profit

    Returns:
        New list sorted by estimated profit descending, token id ascending on ties
    """
    candidates = [h for h in healths if is_candidate(h, profit_floor)]
    return sorted(candidates, key=lambda h: (-h.estimated_profit, h.token_id))
