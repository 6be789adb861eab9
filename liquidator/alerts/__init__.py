from .telegram import AlertConfig, TelegramAlerts

__all__ = ["AlertConfig", "TelegramAlerts"]
