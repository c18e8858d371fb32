"""
Notification gateway loader.

Loads the configured AlertNotificationGateway from settings.

Usage:
    from batchledger.adapters import get_notification_gateway

    gateway = get_notification_gateway()
    gateway.notify(payload)

Settings:
    BATCHLEDGER = {
        "NOTIFICATION_GATEWAY": "batchledger.adapters.logging.LoggingGateway",
    }
"""

from __future__ import annotations

import logging
import threading

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from batchledger.conf import batchledger_settings
from batchledger.protocols.notifications import AlertNotificationGateway

logger = logging.getLogger(__name__)


# Cached gateway instance
_lock = threading.Lock()
_gateway: AlertNotificationGateway | None = None


def get_notification_gateway() -> AlertNotificationGateway:
    """
    Return the configured notification gateway.

    Raises:
        ImproperlyConfigured: If NOTIFICATION_GATEWAY is empty, cannot be
            imported, or does not implement ``notify``
    """
    global _gateway

    if _gateway is None:
        with _lock:
            if _gateway is None:  # double-checked
                gateway_path = batchledger_settings.NOTIFICATION_GATEWAY

                if not gateway_path:
                    raise ImproperlyConfigured(
                        "BATCHLEDGER['NOTIFICATION_GATEWAY'] must be configured. "
                        "Example: 'batchledger.adapters.logging.LoggingGateway'"
                    )

                try:
                    gateway_class = import_string(gateway_path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import notification gateway '{gateway_path}': {e}"
                    ) from e

                gateway = gateway_class()
                if not isinstance(gateway, AlertNotificationGateway):
                    raise ImproperlyConfigured(
                        f"'{gateway_path}' does not implement notify(payload)"
                    )
                _gateway = gateway
                logger.debug("Loaded notification gateway: %s", gateway_path)

    return _gateway


def reset_notification_gateway() -> None:
    """Reset the cached gateway. Useful for testing."""
    global _gateway
    with _lock:
        _gateway = None
