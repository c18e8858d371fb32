"""
batchledger configuration.

Usage in settings.py:
    BATCHLEDGER = {
        "NOTIFICATION_GATEWAY": "myproject.notifications.KnockGateway",
        "ALERT_RECIPIENT": "inventory-managers",
        "EXPIRY_WARNING_DAYS": 7,
        "TRANSACTION_MAX_RETRIES": 3,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class BatchLedgerSettings:
    """batchledger configuration settings."""

    # Who receives alert notifications (user id or group handle)
    ALERT_RECIPIENT: str = "admin"

    # Expiry alert windows (days)
    EXPIRY_WARNING_DAYS: int = 7
    EXPIRY_CRITICAL_DAYS: int = 3

    # AlertNotificationGateway implementation (dotted path)
    NOTIFICATION_GATEWAY: str = "batchledger.adapters.logging.LoggingGateway"

    # Notification dispatch queue
    NOTIFICATION_QUEUE_SIZE: int = 1000
    NOTIFICATION_MAX_ATTEMPTS: int = 3
    NOTIFICATION_RETRY_DELAY_MS: int = 200
    NOTIFICATION_ASYNC: bool = True

    # Retries for write conflicts when the service owns the transaction
    TRANSACTION_MAX_RETRIES: int = 3
    TRANSACTION_RETRY_DELAY_MS: int = 100

    # Listing pagination
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 100

    CURRENCY: str = "MXN"

    # Batch size for release_expired_reservations processing
    EXPIRED_BATCH_SIZE: int = 200


def get_batchledger_settings() -> BatchLedgerSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "BATCHLEDGER", {})
    return BatchLedgerSettings(**{
        k: v for k, v in user_settings.items()
        if k in BatchLedgerSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_batchledger_settings(), name)


batchledger_settings = _LazySettings()
