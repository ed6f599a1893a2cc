"""
Alert delivery outcome.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .alert import AlertEvent, AlertKind

MAX_ERROR_LENGTH = 500


@dataclass(frozen=True)
class DeliveryResult:
    """What happened when one alert was pushed to the notification target."""

    alert_kind: AlertKind
    alert_id: Optional[int]
    attempts: int
    delivered_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.delivered_at is not None

    @classmethod
    def delivered(cls, alert: AlertEvent, attempts: int) -> "DeliveryResult":
        return cls(
            alert_kind=alert.kind,
            alert_id=alert.id,
            attempts=attempts,
            delivered_at=datetime.now(),
        )

    @classmethod
    def failed(cls, alert: AlertEvent, attempts: int, error: str) -> "DeliveryResult":
        return cls(
            alert_kind=alert.kind,
            alert_id=alert.id,
            attempts=attempts,
            error_message=error[:MAX_ERROR_LENGTH],
        )
