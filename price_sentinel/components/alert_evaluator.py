"""
Alert evaluation.

Decides whether a fresh price record warrants a new-low or sale-start alert,
honouring per-kind cooldown windows, and computes the historical low as known
at snapshot time.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..interfaces import ICatalogStore
from ..models.alert import AlertEvent, AlertKind
from ..models.item import TrackedItem
from ..models.price import PriceRecord
from ..utils.logging import get_logger

logger = get_logger("alert_evaluator")

CooldownCheck = Callable[[AlertKind], bool]


def evaluate_alert(
    item: TrackedItem,
    new_record: PriceRecord,
    previous_record: Optional[PriceRecord],
    is_cooling_down: CooldownCheck,
    now: Optional[datetime] = None,
) -> Optional[AlertEvent]:
    """
    Evaluate one record against the previous one.

    New low is checked before sale start and the first match wins.

    Args:
        item: Item the record belongs to
        new_record: Freshly aggregated record (historical low already resolved)
        previous_record: Latest stored record before this one
        is_cooling_down: Returns True when an alert of that kind is still in its window
        now: Timestamp for the created alert

    Returns:
        AlertEvent, or None when nothing should fire
    """
    if not item.alert_enabled or not new_record.is_priced:
        return None

    created_at = now or datetime.now()

    if (
        previous_record is not None
        and new_record.current_price < new_record.historical_low
        and not is_cooling_down(AlertKind.NEW_LOW)
    ):
        return AlertEvent(
            item_id=item.id or new_record.item_id,
            kind=AlertKind.NEW_LOW,
            trigger_price=new_record.current_price,
            previous_price=new_record.historical_low,
            discount_percent=new_record.discount_percent,
            created_at=created_at,
        )

    sale_started = (previous_record is None or not previous_record.is_on_sale) and (
        new_record.is_on_sale and new_record.discount_percent > 0
    )
    if (
        sale_started
        and item.alert_config.is_satisfied(new_record.current_price, new_record.discount_percent)
        and not is_cooling_down(AlertKind.SALE_START)
    ):
        return AlertEvent(
            item_id=item.id or new_record.item_id,
            kind=AlertKind.SALE_START,
            trigger_price=new_record.current_price,
            previous_price=previous_record.current_price if previous_record else None,
            discount_percent=new_record.discount_percent,
            created_at=created_at,
        )

    return None


def build_release_alert(
    item: TrackedItem, record: PriceRecord, now: Optional[datetime] = None
) -> AlertEvent:
    """Create the alert for an item leaving the unreleased state."""
    return AlertEvent(
        item_id=item.id or record.item_id,
        kind=AlertKind.RELEASE,
        trigger_price=record.current_price,
        previous_price=None,
        discount_percent=record.discount_percent,
        created_at=now or datetime.now(),
    )


def resolve_historical_low(
    item: TrackedItem,
    record: PriceRecord,
    previous: Optional[PriceRecord],
) -> PriceRecord:
    """
    Return ``record`` with the historical low known before this observation.

    A manual override always wins. Otherwise the floor is the smallest positive
    value among the previous floor, the previous priced observation and the
    provider's low when it is strictly below the current price. Zero means
    unknown and never lowers a floor.
    """
    if item.manual_historical_low and item.manual_historical_low > 0:
        return replace(record, historical_low=item.manual_historical_low)

    previous_floor = previous.historical_low if previous and previous.historical_low > 0 else 0.0

    if not record.is_priced:
        return replace(record, historical_low=previous_floor)

    if previous is None:
        return record

    candidates = [previous_floor]
    if previous.is_priced:
        candidates.append(previous.current_price)
    if 0 < record.historical_low < record.current_price:
        candidates.append(record.historical_low)

    positive = [value for value in candidates if value > 0]
    if not positive:
        return record

    return replace(record, historical_low=min(positive))


class AlertEvaluator:
    """Binds alert evaluation to the store's cooldown query."""

    def __init__(self, store: ICatalogStore, cooldown_hours: float = 6.0):
        self.store = store
        self.cooldown_hours = cooldown_hours

    def is_cooling_down(self, item_id: int, kind: AlertKind, now: Optional[datetime] = None) -> bool:
        if self.cooldown_hours <= 0:
            return False
        cutoff = (now or datetime.now()) - timedelta(hours=self.cooldown_hours)
        return self.store.count_alerts_since(item_id, kind, cutoff) > 0

    def evaluate(
        self,
        item: TrackedItem,
        new_record: PriceRecord,
        previous_record: Optional[PriceRecord],
        now: Optional[datetime] = None,
    ) -> Optional[AlertEvent]:
        """Evaluate with cooldown windows read from the store."""
        now = now or datetime.now()
        alert = evaluate_alert(
            item,
            new_record,
            previous_record,
            lambda kind: self.is_cooling_down(item.id, kind, now),
            now,
        )
        if alert:
            logger.info(
                f"{alert.kind.value} alert for {item.display_name}",
                extra={"price": alert.trigger_price, "previous_price": alert.previous_price},
            )
        return alert
