"""
Logging Notification Gateway — default adapter.

Writes each alert to the ``batchledger.notifications`` logger. Projects
that deliver alerts through a real provider configure their own gateway:

    BATCHLEDGER = {
        "NOTIFICATION_GATEWAY": "myproject.alerts.KnockGateway",
    }
"""

from __future__ import annotations

import logging

from batchledger.protocols.notifications import AlertPayload, NotificationResult

logger = logging.getLogger("batchledger.notifications")

# Log level per priority
LEVELS = {
    "CRITICAL": logging.ERROR,
    "HIGH": logging.WARNING,
    "MEDIUM": logging.INFO,
    "LOW": logging.INFO,
}


class LoggingGateway:
    """Gateway that only logs. Useful until a real transport is wired."""

    def notify(self, payload: AlertPayload) -> NotificationResult:
        logger.log(
            LEVELS.get(payload.priority, logging.INFO),
            "alert.notified",
            extra={
                "recipient": payload.user_id,
                "alert_type": payload.alert_type,
                "priority": payload.priority,
                "product": payload.product_name,
                "location": payload.location_code,
                "channels": ",".join(payload.channels),
                "batch_id": payload.batch_id,
            },
        )
        return NotificationResult(success=True, channels=payload.channels)
