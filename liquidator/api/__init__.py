"""
API Package
===========

External boundaries: the settlement ledger and the reference price feed.

Components:
- ledger.py: LedgerClient interface, Receipt
- web3_ledger.py: Web3LedgerClient (JSON-RPC implementation)
- price_feed.py: PriceFeedClient (Pyth Hermes, fallback on failure)
- errors.py: ledger error taxonomy
"""

from .errors import (
    LedgerError,
    PositionNotFound,
    NotLiquidatable,
    TransientNetworkError,
    UnknownLedgerError,
    ConfigurationError,
    error_kind,
)
from .ledger import LedgerClient, Receipt
from .price_feed import PriceFeedClient, parse_pyth_price

__all__ = [
    "LedgerError",
    "PositionNotFound",
    "NotLiquidatable",
    "TransientNetworkError",
    "UnknownLedgerError",
    "ConfigurationError",
    "error_kind",
    "LedgerClient",
    "Receipt",
    "PriceFeedClient",
    "parse_pyth_price",
]
