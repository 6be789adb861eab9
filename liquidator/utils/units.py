"""
Unit Helpers
============

Fixed-point conversions for ledger values and market id derivation.

The settlement contracts use:
- 1e18 for sizes, prices and health factors
- 1e6 for margin (USDC)
- basis points (1e4) for fee and margin ratios
"""

from eth_abi import encode
from web3 import Web3

WAD = 10 ** 18
USDC_SCALE = 10 ** 6
BPS_SCALE = 10_000

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def from_wad(value: int) -> float:
    """Convert a 1e18 fixed-point integer to float."""
    return int(value) / WAD


def from_usdc(value: int) -> float:
    """Convert a 1e6 fixed-point integer (USDC) to float."""
    return int(value) / USDC_SCALE


def bps_to_fraction(bps: int) -> float:
    """Convert basis points to a fraction (250 -> 0.025)."""
    return int(bps) / BPS_SCALE


def is_zero_address(address) -> bool:
    """True for None, empty or the zero address."""
    if not address:
        return True
    return str(address).lower() == ZERO_ADDRESS


def compute_pool_id(
    currency0: str,
    currency1: str,
    fee: int,
    tick_spacing: int,
    hooks: str,
) -> str:
    """
    Compute a Uniswap v4 pool id (the market identifier).

    poolId = keccak256(abi.encode(currency0, currency1, fee, tickSpacing, hooks))

    Args:
        currency0: First currency address
        currency1: Second currency address
        fee: Pool fee (uint24)
        tick_spacing: Tick spacing (int24)
        hooks: Hooks contract address

    Returns:
        0x-prefixed 32-byte hex string
    """
    encoded = encode(
        ["address", "address", "uint24", "int24", "address"],
        [
            Web3.to_checksum_address(currency0),
            Web3.to_checksum_address(currency1),
            fee,
            tick_spacing,
            Web3.to_checksum_address(hooks),
        ],
    )
    return Web3.to_hex(Web3.keccak(encoded))
