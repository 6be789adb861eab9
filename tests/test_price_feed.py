from __future__ import annotations

import asyncio

import aiohttp
import pytest

from liquidator.api.price_feed import PriceFeedClient, PriceFeedError, parse_pyth_price

HERMES_PAYLOAD = [{"id": "ff61", "price": {"price": "412345000000", "expo": -8, "conf": "1"}}]


class _FakeResponse:
    def __init__(self, status: int, payload) -> None:
        self.status = status
        self._payload = payload

    async def json(self):
        return self._payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _FakeSession:
    def __init__(self, status: int = 200, payload=None, error: Exception = None) -> None:
        self.status = status
        self.payload = payload
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        if self.error is not None:
            raise self.error
        return _FakeResponse(self.status, self.payload)


def _client(session: _FakeSession) -> PriceFeedClient:
    return PriceFeedClient(url="https://hermes.test/prices", feed_id="ff61", fallback_price=4000.0,
                           timeout=1.0, session=session)


def test_parse_applies_exponent() -> None:
    assert parse_pyth_price(HERMES_PAYLOAD) == pytest.approx(4123.45)


@pytest.mark.parametrize(
    "payload",
    [[], None, [{"id": "x"}], [{"price": {"price": "abc", "expo": -8}}], [{"price": {"price": "0", "expo": -8}}]],
)
def test_parse_rejects_bad_payloads(payload) -> None:
    with pytest.raises(PriceFeedError):
        parse_pyth_price(payload)


def test_fetch_returns_oracle_price() -> None:
    session = _FakeSession(payload=HERMES_PAYLOAD)
    client = _client(session)

    assert asyncio.run(client.fetch_reference_price()) == pytest.approx(4123.45)
    assert client.last_price_was_fallback is False
    assert session.requests == [("https://hermes.test/prices", {"ids[]": "ff61"})]


@pytest.mark.parametrize(
    "session",
    [
        _FakeSession(error=aiohttp.ClientConnectionError("refused")),
        _FakeSession(error=asyncio.TimeoutError()),
        _FakeSession(status=503, payload=HERMES_PAYLOAD),
        _FakeSession(payload=[]),
    ],
)
def test_fetch_failure_falls_back(session) -> None:
    client = _client(session)

    assert asyncio.run(client.fetch_reference_price()) == 4000.0
    assert client.last_price_was_fallback is True


def test_injected_session_is_not_closed() -> None:
    session = _FakeSession(payload=HERMES_PAYLOAD)
    client = _client(session)

    asyncio.run(client.close())

    assert client._session is session
