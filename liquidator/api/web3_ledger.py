"""
Web3 Ledger Client

Single responsibility: talk to the settlement contracts over JSON-RPC.
"""

import asyncio
import logging
from typing import Awaitable, Dict, Optional, Tuple, TypeVar

import aiohttp
from eth_account import Account
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from ..config import config
from ..models import LiquidationConfig, Position
from ..models.liquidation import ErrorKind
from ..utils.units import from_usdc, from_wad, is_zero_address
from .abi import LEDGER_CUSTOM_ERRORS, LIQUIDATION_ENGINE_ABI, POSITION_MANAGER_ABI
from .errors import (
    LedgerError,
    NotLiquidatable,
    PositionNotFound,
    TransientNetworkError,
    UnknownLedgerError,
)
from .ledger import LedgerClient, Receipt

logger = logging.getLogger(__name__)

T = TypeVar("T")

REVERT_PREFIX = "execution reverted: "

# =============================================================================
# Error Classification
# =============================================================================
# Revert payloads map to an ErrorKind by exact lookup only:
#   1. custom error selector (first 4 bytes of revert data)
#   2. Error(string) reason with the node's "execution reverted: " prefix removed
# Anything not listed is UNKNOWN.

CUSTOM_ERROR_KINDS: Dict[str, ErrorKind] = {
    "PositionNotLiquidatable()": ErrorKind.NOT_LIQUIDATABLE,
    "PositionHealthy()": ErrorKind.NOT_LIQUIDATABLE,
    "PositionNotFound()": ErrorKind.NOT_FOUND,
    "PositionNotActive()": ErrorKind.NOT_FOUND,
    "InvalidPosition()": ErrorKind.NOT_FOUND,
}

REVERT_REASON_KINDS: Dict[str, ErrorKind] = {
    "Position not liquidatable": ErrorKind.NOT_LIQUIDATABLE,
    "Position is healthy": ErrorKind.NOT_LIQUIDATABLE,
    "Not liquidatable": ErrorKind.NOT_LIQUIDATABLE,
    "Position not found": ErrorKind.NOT_FOUND,
    "Position not active": ErrorKind.NOT_FOUND,
    "Position does not exist": ErrorKind.NOT_FOUND,
    "Invalid position": ErrorKind.NOT_FOUND,
}

_KIND_EXCEPTIONS = {
    ErrorKind.NOT_LIQUIDATABLE: NotLiquidatable,
    ErrorKind.NOT_FOUND: PositionNotFound,
    ErrorKind.TRANSIENT: TransientNetworkError,
    ErrorKind.UNKNOWN: UnknownLedgerError,
}


def error_selector(signature: str) -> str:
    """4-byte selector of a custom error signature, 0x-prefixed lowercase hex."""
    return Web3.to_hex(Web3.keccak(text=signature)[:4])


SELECTOR_KINDS: Dict[str, ErrorKind] = {
    error_selector(sig): CUSTOM_ERROR_KINDS[sig] for sig in LEDGER_CUSTOM_ERRORS
}


def classify_revert(exc: ContractLogicError) -> ErrorKind:
    """ErrorKind for a contract revert."""
    data = getattr(exc, "data", None)
    if isinstance(data, (bytes, bytearray)):
        data = Web3.to_hex(data)
    if isinstance(data, str) and len(data) >= 10:
        kind = SELECTOR_KINDS.get(data[:10].lower())
        if kind is not None:
            return kind

    message = getattr(exc, "message", None) or (str(exc.args[0]) if exc.args else "")
    if message.startswith(REVERT_PREFIX):
        message = message[len(REVERT_PREFIX):]
    return REVERT_REASON_KINDS.get(message.strip(), ErrorKind.UNKNOWN)


def translate_exception(exc: BaseException, token_id: Optional[int] = None) -> LedgerError:
    """Map a raw web3/aiohttp exception onto the ledger error taxonomy."""
    if isinstance(exc, LedgerError):
        return exc
    if isinstance(exc, ContractLogicError):
        kind = classify_revert(exc)
    elif isinstance(exc, (TimeExhausted, asyncio.TimeoutError, TimeoutError,
                          aiohttp.ClientError, ConnectionError, OSError)):
        kind = ErrorKind.TRANSIENT
    else:
        kind = ErrorKind.UNKNOWN
    return _KIND_EXCEPTIONS[kind](f"{type(exc).__name__}: {exc}", token_id=token_id)


class Web3LedgerClient(LedgerClient):
    """
    AsyncWeb3 implementation of the ledger boundary.

    Handles:
    - Contract reads with a per-call timeout
    - Signing and sending transactions with a shared nonce counter
    - Waiting for receipts with a confirmation timeout
    - Translating reverts and network failures into ledger errors
    """

    def __init__(
        self,
        rpc_url: str = None,
        private_key: str = None,
        position_manager: str = None,
        liquidation_engine: str = None,
        chain_id: int = None,
        rpc_timeout: float = None,
        confirmation_timeout: float = None,
    ):
        self.rpc_url = rpc_url or config.rpc_url
        self.chain_id = chain_id or config.chain_id
        self.rpc_timeout = rpc_timeout or config.rpc_timeout_sec
        self.confirmation_timeout = confirmation_timeout or config.confirmation_timeout_sec

        self._w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            self.rpc_url,
            request_kwargs={"timeout": aiohttp.ClientTimeout(total=self.rpc_timeout)},
        ))

        private_key = private_key or config.private_key
        self._account = Account.from_key(private_key) if private_key else None

        self._position_manager = self._w3.eth.contract(
            address=Web3.to_checksum_address(position_manager or config.position_manager_address),
            abi=POSITION_MANAGER_ABI,
        )
        self._liquidation_engine = self._w3.eth.contract(
            address=Web3.to_checksum_address(liquidation_engine or config.liquidation_engine_address),
            abi=LIQUIDATION_ENGINE_ABI,
        )

        self._nonce_lock = asyncio.Lock()
        self._next_nonce: Optional[int] = None

    @property
    def address(self) -> Optional[str]:
        return self._account.address if self._account else None

    async def close(self):
        """Close the HTTP session."""
        await self._w3.provider.disconnect()

    async def is_connected(self) -> bool:
        try:
            return await asyncio.wait_for(self._w3.is_connected(), self.rpc_timeout)
        except Exception as e:
            logger.warning(f"RPC connectivity check failed: {e}")
            return False

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def _call(self, call: Awaitable[T], token_id: Optional[int] = None) -> T:
        try:
            return await asyncio.wait_for(call, self.rpc_timeout)
        except Exception as e:
            raise translate_exception(e, token_id) from e

    async def get_position(self, token_id: int) -> Position:
        raw = await self._call(
            self._position_manager.functions.getPosition(token_id).call(),
            token_id,
        )
        owner, margin, market_id, size_base, entry_price, _, opened_at, _ = raw

        if is_zero_address(owner):
            raise PositionNotFound(f"Position {token_id} has no owner", token_id=token_id)

        return Position(
            token_id=token_id,
            owner=owner,
            margin=from_usdc(margin),
            size=from_wad(size_base),
            entry_price=from_wad(entry_price),
            market_id=Web3.to_hex(market_id),
            opened_at=int(opened_at),
        )

    async def is_liquidatable(self, token_id: int) -> Tuple[bool, float, float]:
        liquidatable, price, health_factor = await self._call(
            self._liquidation_engine.functions.isPositionLiquidatable(token_id).call(),
            token_id,
        )
        return bool(liquidatable), from_wad(price), from_wad(health_factor)

    async def get_liquidation_config(self, market_id: str) -> Optional[LiquidationConfig]:
        raw = await self._call(
            self._liquidation_engine.functions.getLiquidationConfig(
                Web3.to_bytes(hexstr=market_id)
            ).call()
        )
        mmr, liq_fee, ins_fee, active = raw
        return LiquidationConfig(
            maintenance_margin_bps=int(mmr),
            liquidation_fee_bps=int(liq_fee),
            insurance_fee_bps=int(ins_fee),
            is_active=bool(active),
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def set_liquidation_config(
        self,
        market_id: str,
        maintenance_margin_bps: int,
        liquidation_fee_bps: int,
        insurance_fee_bps: int,
        active: bool,
    ) -> Receipt:
        function = self._liquidation_engine.functions.configureLiquidation(
            Web3.to_bytes(hexstr=market_id),
            maintenance_margin_bps,
            liquidation_fee_bps,
            insurance_fee_bps,
            active,
        )
        receipt = await self._transact(function)
        if not receipt.success:
            raise UnknownLedgerError(f"configureLiquidation reverted in tx {receipt.tx_hash}")
        return receipt

    async def liquidate(self, token_id: int) -> Receipt:
        function = self._liquidation_engine.functions.liquidatePosition(token_id)
        try:
            receipt = await self._transact(function, token_id)
        except UnknownLedgerError as e:
            # Unlisted revert during gas estimation: ask the ledger before retrying
            if not isinstance(e.__cause__, ContractLogicError):
                raise
            await self._raise_if_ineligible(token_id, "reverted before send")
            raise

        if receipt.success:
            return receipt

        await self._raise_if_ineligible(token_id, f"tx {receipt.tx_hash}")
        raise UnknownLedgerError(f"Liquidation tx {receipt.tx_hash} reverted", token_id=token_id)

    async def _raise_if_ineligible(self, token_id: int, context: str):
        """Raise PositionNotFound / NotLiquidatable if the ledger says so; otherwise return."""
        try:
            liquidatable, _, _ = await self.is_liquidatable(token_id)
        except PositionNotFound:
            raise PositionNotFound(f"Position {token_id} closed ({context})", token_id=token_id)
        except LedgerError as e:
            logger.debug(f"Eligibility re-read for {token_id} failed: {e}")
            return
        if not liquidatable:
            raise NotLiquidatable(
                f"Position {token_id} no longer liquidatable ({context})", token_id=token_id
            )

    async def _transact(self, function, token_id: Optional[int] = None) -> Receipt:
        """Build, sign, send and confirm one transaction."""
        if self._account is None:
            raise UnknownLedgerError("PRIVATE_KEY not configured; cannot send transactions")

        async with self._nonce_lock:
            try:
                if self._next_nonce is None:
                    self._next_nonce = await asyncio.wait_for(
                        self._w3.eth.get_transaction_count(self._account.address, "pending"),
                        self.rpc_timeout,
                    )
                tx = await asyncio.wait_for(
                    function.build_transaction({
                        "from": self._account.address,
                        "nonce": self._next_nonce,
                        "chainId": self.chain_id,
                    }),
                    self.rpc_timeout,
                )
                signed = self._account.sign_transaction(tx)
                tx_hash = await asyncio.wait_for(
                    self._w3.eth.send_raw_transaction(signed.raw_transaction),
                    self.rpc_timeout,
                )
                self._next_nonce += 1
            except asyncio.CancelledError:
                # May have been cancelled after the send went out
                self._next_nonce = None
                raise
            except Exception as e:
                # Resync from the node on the next send
                self._next_nonce = None
                raise translate_exception(e, token_id) from e

        tx_hex = Web3.to_hex(tx_hash)
        logger.debug(f"Sent tx {tx_hex}")

        try:
            raw_receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.confirmation_timeout
            )
        except (Web3Exception, aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise translate_exception(e, token_id) from e

        return Receipt(
            tx_hash=tx_hex,
            success=raw_receipt["status"] == 1,
            block_number=raw_receipt.get("blockNumber"),
            gas_used=raw_receipt.get("gasUsed"),
        )
