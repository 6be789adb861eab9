"""
Utilities Package
=================

Components:
- units.py: fixed-point conversions and market id derivation
"""

from .units import (
    WAD,
    USDC_SCALE,
    BPS_SCALE,
    ZERO_ADDRESS,
    from_wad,
    from_usdc,
    bps_to_fraction,
    is_zero_address,
    compute_pool_id,
)

__all__ = [
    "WAD",
    "USDC_SCALE",
    "BPS_SCALE",
    "ZERO_ADDRESS",
    "from_wad",
    "from_usdc",
    "bps_to_fraction",
    "is_zero_address",
    "compute_pool_id",
]
