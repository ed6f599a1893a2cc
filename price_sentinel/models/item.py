"""
Tracked item models.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ThresholdMode(Enum):
    """How a sale is judged worth alerting on."""

    PRICE = "price"
    DISCOUNT = "discount"
    ANY_SALE = "any_sale"


@dataclass
class AlertConfig:
    """Per-item alert threshold."""

    threshold_mode: ThresholdMode = ThresholdMode.PRICE
    threshold_value: float = 0.0

    def validate(self) -> bool:
        """Validate alert configuration."""
        if not isinstance(self.threshold_mode, ThresholdMode):
            raise ValueError("threshold_mode must be a ThresholdMode enum")

        if self.threshold_value < 0:
            raise ValueError("threshold_value cannot be negative")

        if self.threshold_mode == ThresholdMode.DISCOUNT and self.threshold_value > 100:
            raise ValueError("discount threshold cannot exceed 100")

        return True

    def is_satisfied(self, current_price: float, discount_percent: int) -> bool:
        """Check whether a sale at this price/discount passes the threshold."""
        if self.threshold_mode == ThresholdMode.ANY_SALE:
            return True

        if self.threshold_mode == ThresholdMode.DISCOUNT:
            return discount_percent >= self.threshold_value

        # Price mode without a target accepts any sale
        if self.threshold_value <= 0:
            return True
        return current_price <= self.threshold_value


@dataclass
class TrackedItem:
    """A storefront item in the monitored catalog."""

    external_id: int
    name: str
    enabled: bool = True
    alert_enabled: bool = True
    alert_config: AlertConfig = field(default_factory=AlertConfig)
    manual_historical_low: Optional[float] = None
    was_unreleased: bool = False
    id: Optional[int] = None

    def validate(self) -> bool:
        """Validate tracked item data."""
        if not isinstance(self.external_id, int) or self.external_id <= 0:
            raise ValueError("external_id must be a positive integer")

        if not self.name or not self.name.strip():
            raise ValueError("Item name cannot be empty")

        if self.manual_historical_low is not None and self.manual_historical_low < 0:
            raise ValueError("manual_historical_low cannot be negative")

        self.alert_config.validate()
        return True

    @property
    def display_name(self) -> str:
        return self.name or f"App {self.external_id}"
