"""
Alert Notification Protocol — Interface for alert delivery.

Batchledger decides that an alert must be notified and what it says;
the gateway decides how it reaches people (email, push, SMS, in-app).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable

EMAIL = "email"
PUSH = "push"
IN_APP = "in_app"
SMS = "sms"

PRIORITY_CHANNELS: dict[str, tuple[str, ...]] = {
    "CRITICAL": (EMAIL, PUSH, IN_APP, SMS),
    "HIGH": (EMAIL, PUSH, IN_APP),
    "MEDIUM": (EMAIL, IN_APP),
    "LOW": (IN_APP,),
}


def channels_for_priority(priority: str) -> tuple[str, ...]:
    """Delivery channels for an alert priority. Unknown priorities get in-app only."""
    return PRIORITY_CHANNELS.get(priority, (IN_APP,))


@dataclass(frozen=True)
class AlertPayload:
    """Structured alert handed to the gateway."""

    user_id: str
    alert_type: str  # "LOW_STOCK", "REORDER_POINT", "EXPIRY_WARNING", "EXPIRED_PRODUCT"
    priority: str    # "LOW", "MEDIUM", "HIGH", "CRITICAL"
    product_id: int
    product_name: str
    location_code: str
    alert_id: str = ""
    threshold: Decimal | None = None
    current_value: Decimal | None = None
    unit: str = ""
    expiry_date: datetime | None = None
    batch_id: str | None = None
    days_until_expiry: int | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def channels(self) -> tuple[str, ...]:
        return channels_for_priority(self.priority)

    def as_dict(self) -> dict:
        """JSON-friendly dict (Decimals and datetimes as strings)."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = str(value)
            elif isinstance(value, datetime):
                data[key] = value.isoformat()
        return data


@dataclass(frozen=True)
class NotificationResult:
    """Result of a delivery attempt."""

    success: bool
    channels: tuple[str, ...] = ()
    message_id: str | None = None
    error: str | None = None


@runtime_checkable
class AlertNotificationGateway(Protocol):
    """
    Protocol for alert delivery.

    Implementations should:
    - Pick channels from the payload priority (see channels_for_priority)
    - Deliver through their own transport
    - Return NotificationResult(success=False, error=...) on delivery
      failure instead of raising, when they can
    """

    def notify(self, payload: AlertPayload) -> NotificationResult:
        """
        Deliver one alert.

        Args:
            payload: Alert data

        Returns:
            NotificationResult with the channels used
        """
        ...
