"""
Price Feed Client

Single responsibility: fetch the reference price from Pyth Hermes.
Never raises; returns the configured fallback price on any failure.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from ..config import config

logger = logging.getLogger(__name__)


class PriceFeedError(ValueError):
    """Malformed or empty price payload."""


def parse_pyth_price(payload: Any) -> float:
    """
    Parse a Hermes latest_price_feeds response.

    Response shape:
        [{"id": "...", "price": {"price": "400012345678", "expo": -8, ...}, ...}]

    Returns:
        price * 10 ** expo
    """
    if not isinstance(payload, list) or not payload:
        raise PriceFeedError("No price data received from Pyth")

    price_data = payload[0].get("price") if isinstance(payload[0], dict) else None
    if not isinstance(price_data, dict):
        raise PriceFeedError("Missing price object")

    try:
        price = int(price_data["price"])
        expo = int(price_data["expo"])
    except (KeyError, TypeError, ValueError) as e:
        raise PriceFeedError(f"Bad price fields: {e}") from e

    value = price * (10 ** expo)
    if value <= 0:
        raise PriceFeedError(f"Non-positive price {value}")
    return value


class PriceFeedClient:
    """Async client for the reference price oracle."""

    def __init__(
        self,
        url: str = None,
        feed_id: str = None,
        fallback_price: float = None,
        timeout: float = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.url = url or config.price_feed_url
        self.feed_id = feed_id or config.price_feed_id
        self.fallback_price = fallback_price if fallback_price is not None else config.fallback_price
        self.timeout = timeout or config.price_timeout_sec
        self._session = session
        self._owns_session = session is None
        self.last_price_was_fallback = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP session if we created it."""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    async def _ensure_session(self):
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def fetch_reference_price(self) -> float:
        """
        Fetch the current reference price.

        Returns:
            Oracle price, or the fallback price on timeout, non-200,
            malformed payload or any other failure
        """
        try:
            await self._ensure_session()
            async with self._session.get(
                self.url,
                params={"ids[]": self.feed_id},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    raise PriceFeedError(f"HTTP {response.status}")
                payload = await response.json()

            price = parse_pyth_price(payload)
            self.last_price_was_fallback = False
            return price

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch Pyth price: {e}; using fallback {self.fallback_price}")
            self.last_price_was_fallback = True
            return self.fallback_price
