"""
Batchledger Adapters.

Implementations of protocols for external systems.
"""

from batchledger.adapters.gateway import (
    get_notification_gateway,
    reset_notification_gateway,
)
from batchledger.adapters.logging import LoggingGateway
from batchledger.adapters.noop import NoopGateway

__all__ = [
    "LoggingGateway",
    "NoopGateway",
    "get_notification_gateway",
    "reset_notification_gateway",
]
