#!/usr/bin/env python3
"""
CLI entry point for the liquidation risk scan.

Read-only: lists open positions by risk level, sends no transactions.

Usage:
    python scripts/scan_positions.py
    python scripts/scan_positions.py --max-token-id 500
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from liquidator.cli import main


if __name__ == "__main__":
    sys.exit(main(["scan", *sys.argv[1:]]))
