"""
Protocol interfaces for the Price Sentinel system.

This module defines the protocol interfaces that establish the boundaries
between the monitoring core and its collaborators: price providers, the
catalog store and the outbound notifier.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from .models.alert import AlertEvent, AlertKind
from .models.delivery import DeliveryResult
from .models.item import AlertConfig, TrackedItem
from .models.price import Offer, PriceRecord


class IProviderAdapter(Protocol):
    """Protocol for source-specific price adapters."""

    @property
    def name(self) -> str:
        """Short source name used in logs and health reports."""
        ...

    async def get_offer(self, external_id: int) -> Optional[Offer]:
        """Fetch and parse the provider's view of one item."""
        ...

    async def health_check(self) -> bool:
        """Check whether the provider is reachable."""
        ...


class ICatalogStore(Protocol):
    """Protocol for the persistent catalog, price history and alert store."""

    def get_enabled_items(self) -> List[TrackedItem]:
        """Return all items with monitoring enabled."""
        ...

    def get_item(self, external_id: int) -> Optional[TrackedItem]:
        """Return one item by storefront id."""
        ...

    def update_item_name(self, item_id: int, name: str) -> None:
        """Replace an item's display name."""
        ...

    def update_alert_config(self, item_id: int, alert_config: AlertConfig) -> None:
        """Replace an item's alert threshold."""
        ...

    def set_was_unreleased(self, item_id: int, was_unreleased: bool) -> None:
        """Record whether the item has been seen unreleased."""
        ...

    def get_latest_record(self, item_id: int) -> Optional[PriceRecord]:
        """Return the newest price record for an item."""
        ...

    def add_price_record(self, record: PriceRecord) -> PriceRecord:
        """Append a price record to history."""
        ...

    def add_alert(self, alert: AlertEvent) -> AlertEvent:
        """Append an alert event."""
        ...

    def mark_alert_notified(self, alert_id: int) -> None:
        """Flag an alert as delivered."""
        ...

    def count_alerts_since(self, item_id: int, kind: AlertKind, since: datetime) -> int:
        """Count alerts of a kind for an item created after ``since``."""
        ...

    def cleanup_older_than(self, days: int) -> Dict[str, int]:
        """Delete history and alerts older than ``days``, keeping the latest record per item."""
        ...

    def get_last_run_time(self) -> Optional[datetime]:
        """Return the last successful monitoring run time."""
        ...

    def set_last_run_time(self, when: datetime) -> None:
        """Persist the last successful monitoring run time."""
        ...


class INotifier(Protocol):
    """Protocol for outbound alert notification."""

    def notify(self, alert: AlertEvent, item: TrackedItem) -> DeliveryResult:
        """Deliver one alert."""
        ...

    def test_connection(self) -> bool:
        """Check whether the notification target is reachable."""
        ...

    def get_stats(self) -> Dict[str, Any]:
        """Return delivery statistics."""
        ...
