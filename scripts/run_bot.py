#!/usr/bin/env python3
"""
Liquidation Bot - CLI Entry Point
=================================

Runs the continuous liquidation loop.

Usage:
    # Start the bot
    python scripts/run_bot.py

    # Check and liquidate a single position
    python scripts/run_bot.py manual 42

    # Alerts to console instead of Telegram
    python scripts/run_bot.py --dry-run
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from liquidator.cli import main


if __name__ == "__main__":
    sys.exit(main())
