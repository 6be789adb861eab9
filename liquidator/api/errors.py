"""
Ledger Errors
=============

Exception taxonomy for the ledger boundary. Every exception carries an
ErrorKind so callers decide retry / count / log severity without
inspecting messages.
"""

import asyncio
from typing import Optional

from ..models.liquidation import ErrorKind


class LedgerError(Exception):
    """Base class for ledger boundary failures."""
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str = "", token_id: Optional[int] = None):
        super().__init__(message)
        self.token_id = token_id


class PositionNotFound(LedgerError):
    """Position does not exist or is already closed."""
    kind = ErrorKind.NOT_FOUND


class NotLiquidatable(LedgerError):
    """Position is healthy or was already liquidated by someone else."""
    kind = ErrorKind.NOT_LIQUIDATABLE


class TransientNetworkError(LedgerError):
    """Network failure or timeout; safe to retry."""
    kind = ErrorKind.TRANSIENT


class UnknownLedgerError(LedgerError):
    """Anything not otherwise classified; retried up to the cap."""
    kind = ErrorKind.UNKNOWN


class ConfigurationError(Exception):
    """Liquidation parameters could not be confirmed at startup."""


def error_kind(exc: BaseException) -> ErrorKind:
    """ErrorKind for any exception; plain timeouts and OS errors are transient."""
    if isinstance(exc, LedgerError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return ErrorKind.TRANSIENT
    return ErrorKind.UNKNOWN
