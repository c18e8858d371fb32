"""
Noop Notification Gateway — Stub adapter for development and testing.

This adapter implements the AlertNotificationGateway protocol and delivers
nothing. Every payload it receives is kept in ``sent`` so tests can assert
on what would have been notified.

Usage in settings.py:
    BATCHLEDGER = {
        "NOTIFICATION_GATEWAY": "batchledger.adapters.noop.NoopGateway",
    }

WARNING: Do NOT use in production. Alerts are silently dropped.
"""

from __future__ import annotations

from batchledger.protocols.notifications import AlertPayload, NotificationResult


class NoopGateway:
    """
    No-operation gateway.

    Always reports success on the channels the priority maps to.
    """

    def __init__(self):
        self.sent: list[AlertPayload] = []

    def notify(self, payload: AlertPayload) -> NotificationResult:
        self.sent.append(payload)
        return NotificationResult(success=True, channels=payload.channels)
