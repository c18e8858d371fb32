"""
Batchledger Protocols.

Defines interfaces for external system integration.
"""

from batchledger.protocols.notifications import (
    AlertNotificationGateway,
    AlertPayload,
    NotificationResult,
    channels_for_priority,
)

__all__ = [
    "AlertNotificationGateway",
    "AlertPayload",
    "NotificationResult",
    "channels_for_priority",
]
