"""
Contract ABIs
=============

Minimal ABI fragments for the calls the liquidator makes.
"""

POSITION_MANAGER_ABI = [
    {
        "type": "function",
        "name": "getPosition",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "owner", "type": "address"},
                    {"name": "margin", "type": "uint96"},
                    {"name": "marketId", "type": "bytes32"},
                    {"name": "sizeBase", "type": "int256"},
                    {"name": "entryPrice", "type": "uint256"},
                    {"name": "lastFundingIndex", "type": "uint256"},
                    {"name": "openedAt", "type": "uint64"},
                    {"name": "fundingPaid", "type": "int256"},
                ],
            }
        ],
    },
]

LIQUIDATION_ENGINE_ABI = [
    {
        "type": "function",
        "name": "isPositionLiquidatable",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [
            {"name": "liquidatable", "type": "bool"},
            {"name": "price", "type": "uint256"},
            {"name": "healthFactor", "type": "uint256"},
        ],
    },
    {
        "type": "function",
        "name": "getLiquidationConfig",
        "stateMutability": "view",
        "inputs": [{"name": "poolId", "type": "bytes32"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "maintenanceMarginRatio", "type": "uint256"},
                    {"name": "liquidationFeeRate", "type": "uint256"},
                    {"name": "insuranceFeeRate", "type": "uint256"},
                    {"name": "isActive", "type": "bool"},
                ],
            }
        ],
    },
    {
        "type": "function",
        "name": "configureLiquidation",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "poolId", "type": "bytes32"},
            {"name": "maintenanceMarginRatio", "type": "uint256"},
            {"name": "liquidationFeeRate", "type": "uint256"},
            {"name": "insuranceFeeRate", "type": "uint256"},
            {"name": "isActive", "type": "bool"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "liquidatePosition",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [],
    },
]

# Custom errors the liquidation engine and position manager revert with
LEDGER_CUSTOM_ERRORS = [
    "PositionNotLiquidatable()",
    "PositionHealthy()",
    "PositionNotFound()",
    "PositionNotActive()",
    "InvalidPosition()",
]
