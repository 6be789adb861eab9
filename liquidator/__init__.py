"""
Perp Liquidator
===============

Monitors perpetual positions on the settlement ledger and liquidates the
undercollateralized ones that are profitable to close.
"""

__version__ = "0.1.0"
