from __future__ import annotations

import asyncio
from types import SimpleNamespace

import aiohttp
import pytest
from web3.exceptions import ContractLogicError, TimeExhausted

from conftest import make_config, make_health
from liquidator.api.errors import (
    NotLiquidatable,
    PositionNotFound,
    TransientNetworkError,
    UnknownLedgerError,
    error_kind,
)
from liquidator.api.web3_ledger import Web3LedgerClient, classify_revert, error_selector, translate_exception
from liquidator.core.executor import BatchExecutor
from liquidator.models import ErrorKind


def test_error_selector_matches_known_value() -> None:
    # keccak256("Error(string)")[:4]
    assert error_selector("Error(string)") == "0x08c379a0"


@pytest.mark.parametrize(
    "message, expected",
    [
        ("execution reverted: Position not liquidatable", ErrorKind.NOT_LIQUIDATABLE),
        ("execution reverted: Position is healthy", ErrorKind.NOT_LIQUIDATABLE),
        ("execution reverted: Position not found", ErrorKind.NOT_FOUND),
        ("Position does not exist", ErrorKind.NOT_FOUND),
        ("execution reverted: Insufficient insurance fund", ErrorKind.UNKNOWN),
        # Exact match only; a reason that merely mentions the phrase is not classified
        ("execution reverted: Position not liquidatable yet maybe", ErrorKind.UNKNOWN),
    ],
)
def test_revert_reason_classification(message: str, expected: ErrorKind) -> None:
    assert classify_revert(ContractLogicError(message)) is expected


def test_custom_error_selector_takes_precedence() -> None:
    data = error_selector("PositionNotLiquidatable()")
    exc = ContractLogicError("execution reverted", data=data)

    assert classify_revert(exc) is ErrorKind.NOT_LIQUIDATABLE


@pytest.mark.parametrize(
    "exc, expected_type",
    [
        (ContractLogicError("execution reverted: Position is healthy"), NotLiquidatable),
        (ContractLogicError("execution reverted: Position not found"), PositionNotFound),
        (TimeExhausted("no receipt"), TransientNetworkError),
        (asyncio.TimeoutError(), TransientNetworkError),
        (aiohttp.ClientConnectionError("reset"), TransientNetworkError),
        (ConnectionResetError("reset"), TransientNetworkError),
        (ValueError("nonce too low"), UnknownLedgerError),
    ],
)
def test_translate_exception(exc: Exception, expected_type: type) -> None:
    translated = translate_exception(exc, token_id=9)

    assert isinstance(translated, expected_type)
    assert translated.token_id == 9


def test_translate_passes_ledger_errors_through() -> None:
    original = NotLiquidatable("already")
    assert translate_exception(original) is original


def test_error_kind_of_plain_exceptions() -> None:
    assert error_kind(asyncio.TimeoutError()) is ErrorKind.TRANSIENT
    assert error_kind(RuntimeError("x")) is ErrorKind.UNKNOWN
    assert error_kind(PositionNotFound("x")) is ErrorKind.NOT_FOUND


TEST_KEY = "0x" + "11" * 32


class _RevertingCall:
    def __init__(self, reason: str) -> None:
        self.reason = reason

    async def build_transaction(self, tx):
        raise ContractLogicError(self.reason)


class _BuiltCall:
    async def build_transaction(self, tx):
        return dict(tx, to="0x" + "22" * 20, data="0x")


class _Functions:
    def __init__(self, call) -> None:
        self.call = call

    def liquidatePosition(self, token_id):
        return self.call


class _Engine:
    def __init__(self, call) -> None:
        self.functions = _Functions(call)


def _client(call, health=None, health_error=None) -> Web3LedgerClient:
    client = Web3LedgerClient(rpc_url="http://127.0.0.1:8545", private_key=TEST_KEY, chain_id=1301)
    client._liquidation_engine = _Engine(call)
    client._next_nonce = 5

    async def is_liquidatable(token_id):
        if health_error is not None:
            raise health_error
        return health

    client.is_liquidatable = is_liquidatable
    return client


def test_unlisted_build_revert_on_healthy_position_is_not_liquidatable() -> None:
    client = _client(
        _RevertingCall("execution reverted: LiquidationEngine: position healthy"),
        health=(False, 4000.0, 1.3),
    )

    with pytest.raises(NotLiquidatable):
        asyncio.run(client.liquidate(7))


def test_unlisted_build_revert_ends_after_one_attempt() -> None:
    client = _client(
        _RevertingCall("execution reverted: LiquidationEngine: position healthy"),
        health=(False, 4000.0, 1.3),
    )

    result = asyncio.run(
        BatchExecutor(client, cfg=make_config()).liquidate_with_retry(make_health(7), max_retries=3)
    )

    assert result.success is False
    assert result.attempts == 1
    assert result.error_kind is ErrorKind.NOT_LIQUIDATABLE


def test_unlisted_build_revert_on_closed_position_is_not_found() -> None:
    client = _client(
        _RevertingCall("execution reverted: whatever"),
        health_error=PositionNotFound("gone"),
    )

    with pytest.raises(PositionNotFound):
        asyncio.run(client.liquidate(7))


def test_unlisted_build_revert_while_still_eligible_stays_unknown() -> None:
    client = _client(_RevertingCall("execution reverted: oracle stale"), health=(True, 4000.0, 0.9))

    with pytest.raises(UnknownLedgerError):
        asyncio.run(client.liquidate(7))


class _HangingEth:
    async def send_raw_transaction(self, raw):
        await asyncio.sleep(10)


class _FakeAccount:
    address = "0x" + "33" * 20

    def sign_transaction(self, tx):
        return SimpleNamespace(raw_transaction=b"\x01")


def test_cancelled_send_resets_nonce() -> None:
    client = _client(_BuiltCall(), health=(True, 4000.0, 0.9))
    client._account = _FakeAccount()
    client._w3 = SimpleNamespace(eth=_HangingEth())

    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(asyncio.wait_for(client.liquidate(7), 0.05))

    assert client._next_nonce is None
    assert not client._nonce_lock.locked()
