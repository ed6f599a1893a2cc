"""
Alert event models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class AlertKind(Enum):
    """Kinds of price alerts."""

    NEW_LOW = "new_low"
    SALE_START = "sale_start"
    RELEASE = "release"


@dataclass
class AlertEvent:
    """A detected price event for one item."""

    item_id: int
    kind: AlertKind
    trigger_price: float
    previous_price: Optional[float] = None
    discount_percent: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    notified: bool = False
    id: Optional[int] = None

    def validate(self) -> bool:
        """Validate alert event data."""
        if not isinstance(self.kind, AlertKind):
            raise ValueError("kind must be an AlertKind enum")

        if self.trigger_price < 0:
            raise ValueError("trigger_price cannot be negative")

        if self.previous_price is not None and self.previous_price < 0:
            raise ValueError("previous_price cannot be negative")

        if not 0 <= self.discount_percent <= 100:
            raise ValueError("discount_percent must be between 0 and 100")

        return True
