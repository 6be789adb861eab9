"""
Telegram Alerts
===============

Telegram notification system for the liquidator.

Alert types:
- Liquidation alerts: a position was liquidated by this bot
- Failure alerts: a liquidation failed for an unexpected reason
- Service status: started / stopped / error
"""

import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

import requests

from ..models import ExecutionResult, PositionHealth

# Timezone for alert timestamps
EASTERN_TZ = ZoneInfo("America/New_York")

logger = logging.getLogger(__name__)

# Rate limiting constants
MIN_MESSAGE_INTERVAL_SECONDS = 1  # Telegram limit: 30/sec
MAX_ALERTS_PER_MINUTE = 20


@dataclass
class AlertConfig:
    """Configuration for alert sending."""
    bot_token: str
    chat_id: str
    dry_run: bool = False
    max_message_length: int = 4000
    min_message_interval: float = MIN_MESSAGE_INTERVAL_SECONDS


class TelegramAlerts:
    """
    Telegram alert sender for the liquidator.

    Includes rate limiting to prevent Telegram API abuse. Alerts from the
    monitoring loop are sent on a background thread so a slow Telegram
    response never delays a liquidation.
    """

    def __init__(self, config: AlertConfig):
        self.config = config
        self._validate()

        self._last_message_time: float = 0
        self._alerts_this_minute: List[float] = []
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls, dry_run: bool = False) -> Optional["TelegramAlerts"]:
        """
        Create TelegramAlerts from environment variables.

        Returns:
            TelegramAlerts instance if configured (or dry run), None otherwise
        """
        bot_token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
        chat_id = os.environ.get("TELEGRAM_CHAT_ID", "")

        if not dry_run and (not bot_token or not chat_id):
            logger.warning(
                "Telegram not configured (set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID)"
            )
            return None

        return cls(AlertConfig(bot_token=bot_token, chat_id=chat_id, dry_run=dry_run))

    def _validate(self):
        if not self.config.dry_run:
            if not self.config.bot_token:
                raise ValueError("TELEGRAM_BOT_TOKEN is required (or use --dry-run)")
            if not self.config.chat_id:
                raise ValueError("TELEGRAM_CHAT_ID is required (or use --dry-run)")

    def _check_rate_limit(self) -> bool:
        """True if another message fits in the per-minute budget."""
        now = time.time()
        self._alerts_this_minute = [t for t in self._alerts_this_minute if now - t < 60]

        if len(self._alerts_this_minute) >= MAX_ALERTS_PER_MINUTE:
            logger.warning(f"Rate limited: {len(self._alerts_this_minute)} alerts in last minute")
            return False
        return True

    def _enforce_message_interval(self):
        elapsed = time.time() - self._last_message_time
        if elapsed < self.config.min_message_interval:
            time.sleep(self.config.min_message_interval - elapsed)

    def _send_message(self, text: str, skip_rate_limit: bool = False) -> bool:
        """
        Send a message via Telegram Bot API.

        Args:
            text: Message text (HTML formatted)
            skip_rate_limit: If True, skip rate limit check (status alerts)

        Returns:
            True if sent (or printed in dry run)
        """
        text = self._truncate_message(text)

        if self.config.dry_run:
            logger.info(f"[DRY RUN] Would send Telegram message:\n{text}")
            print(f"\n{'='*60}")
            print("[DRY RUN] Telegram Alert:")
            print("=" * 60)
            print(text.replace("<b>", "").replace("</b>", "").replace("<code>", "").replace("</code>", ""))
            print("=" * 60 + "\n")
            return True

        with self._lock:
            if not skip_rate_limit and not self._check_rate_limit():
                logger.warning("Message dropped due to rate limiting")
                return False

            self._enforce_message_interval()

            url = f"https://api.telegram.org/bot{self.config.bot_token}/sendMessage"
            payload = {
                "chat_id": self.config.chat_id,
                "text": text,
                "parse_mode": "HTML",
            }

            try:
                response = requests.post(url, json=payload, timeout=10)
                response.raise_for_status()

                now = time.time()
                self._last_message_time = now
                self._alerts_this_minute.append(now)
                logger.info("Telegram alert sent successfully")
                return True

            except requests.exceptions.Timeout:
                logger.error("Telegram request timed out")
            except requests.exceptions.HTTPError as e:
                # Log status code without exposing token in URL
                status_code = e.response.status_code if e.response is not None else "unknown"
                logger.error(f"Telegram HTTP error: {status_code}")
            except requests.exceptions.ConnectionError:
                logger.error("Telegram connection error - network issue")
            except requests.exceptions.RequestException:
                logger.error("Telegram request failed")
            return False

    def _send_message_async(self, text: str, skip_rate_limit: bool = False):
        """Send message without blocking. Fire and forget."""
        def _send():
            try:
                self._send_message(text, skip_rate_limit=skip_rate_limit)
            except Exception as e:
                logger.error(f"Async send failed: {type(e).__name__}")

        thread = threading.Thread(target=_send, daemon=True)
        thread.start()

    def _truncate_message(self, text: str) -> str:
        if len(text) > self.config.max_message_length:
            return text[:self.config.max_message_length - 20] + "\n... (truncated)"
        return text

    # -------------------------------------------------------------------------
    # Message Formatting
    # -------------------------------------------------------------------------

    @staticmethod
    def format_liquidation(result: ExecutionResult, health: PositionHealth) -> str:
        lines = [
            f"<b>Position #{result.token_id} liquidated</b>",
            f"{health.side.upper()} {health.position_size:,.4f} @ {health.current_price:,.2f}",
            f"Health factor: {health.health_factor:.3f}",
            f"Estimated profit: {result.profit:,.3f} USDC",
            f"Attempts: {result.attempts}",
        ]
        if result.tx_hash:
            lines.append(f"Tx: <code>{result.tx_hash}</code>")
        return "\n".join(lines)

    @staticmethod
    def format_failure(result: ExecutionResult) -> str:
        kind = result.error_kind.value if result.error_kind else "unknown"
        return "\n".join([
            f"<b>Liquidation of #{result.token_id} failed</b>",
            f"Attempts: {result.attempts} ({kind})",
            f"Error: <code>{(result.error or '')[:300]}</code>",
        ])

    # -------------------------------------------------------------------------
    # Public Alerts
    # -------------------------------------------------------------------------

    def send_liquidation_alert_async(self, result: ExecutionResult, health: PositionHealth):
        self._send_message_async(self.format_liquidation(result, health))

    def send_failure_alert_async(self, result: ExecutionResult):
        self._send_message_async(self.format_failure(result))

    def send_service_status(self, status: str, details: str = "", timestamp: datetime = None) -> bool:
        """
        Send service status notification (skips rate limiting).

        Args:
            status: "started", "stopped" or "error"
            details: Additional details
            timestamp: Timestamp (default: now)
        """
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        timestamp_et = timestamp.astimezone(EASTERN_TZ)

        status_text = {
            "started": "Liquidator started",
            "stopped": "Liquidator stopped",
            "error": "Liquidator error",
        }.get(status, f"Status: {status}")

        lines = [f"<b>{status_text} at {timestamp_et.strftime('%H:%M:%S %Z')}</b>"]
        if details:
            lines.append("")
            lines.append(details)

        return self._send_message("\n".join(lines), skip_rate_limit=True)
