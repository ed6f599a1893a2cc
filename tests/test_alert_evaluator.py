"""
Tests for alert evaluation and historical-low resolution.
"""

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest

from price_sentinel.components.alert_evaluator import (
    AlertEvaluator,
    build_release_alert,
    evaluate_alert,
    resolve_historical_low,
)
from price_sentinel.models.alert import AlertEvent, AlertKind
from price_sentinel.models.item import AlertConfig, ThresholdMode, TrackedItem
from price_sentinel.models.price import PriceRecord, PriceSource


def record(price, low, discount=0, on_sale=None, source=PriceSource.CATALOG, original=None):
    return PriceRecord(
        item_id=1,
        current_price=price,
        original_price=original if original is not None else max(price, 1000.0),
        discount_percent=discount,
        historical_low=low,
        is_on_sale=on_sale if on_sale is not None else discount > 0,
        source=source,
    )


def never_cooling(kind):
    return False


def always_cooling(kind):
    return True


@pytest.fixture
def item():
    return TrackedItem(
        id=1,
        external_id=620,
        name="Portal 2",
        alert_config=AlertConfig(ThresholdMode.ANY_SALE, 0),
    )


class TestEvaluateAlert:
    """Test cases for the pure evaluation function."""

    def test_new_low(self, item):
        previous = record(1000, 800)
        new = record(700, 800, discount=30)

        alert = evaluate_alert(item, new, previous, never_cooling)

        assert alert.kind == AlertKind.NEW_LOW
        assert alert.trigger_price == 700
        assert alert.previous_price == 800

    def test_new_low_requires_previous_record(self, item):
        new = record(700, 800)

        alert = evaluate_alert(item, new, None, never_cooling)

        assert alert is None

    def test_new_low_suppressed_by_cooldown_but_sale_still_checked(self, item):
        previous = record(1000, 800)
        new = record(700, 800, discount=30)

        alert = evaluate_alert(
            item, new, previous, lambda kind: kind == AlertKind.NEW_LOW
        )

        assert alert.kind == AlertKind.SALE_START

    def test_everything_cooling_down(self, item):
        previous = record(1000, 800)
        new = record(700, 800, discount=30)

        assert evaluate_alert(item, new, previous, always_cooling) is None

    def test_new_low_wins_over_sale_start(self, item):
        previous = record(1000, 800, on_sale=False)
        new = record(700, 800, discount=30)

        alert = evaluate_alert(item, new, previous, never_cooling)

        assert alert.kind == AlertKind.NEW_LOW

    def test_sale_start(self, item):
        previous = record(1000, 500)
        new = record(750, 500, discount=25)

        alert = evaluate_alert(item, new, previous, never_cooling)

        assert alert.kind == AlertKind.SALE_START
        assert alert.previous_price == 1000
        assert alert.discount_percent == 25

    def test_sale_start_on_first_observation(self, item):
        new = record(750, 500, discount=25)

        alert = evaluate_alert(item, new, None, never_cooling)

        assert alert.kind == AlertKind.SALE_START
        assert alert.previous_price is None

    def test_continuing_sale_does_not_alert(self, item):
        previous = record(750, 500, discount=25)
        new = record(750, 500, discount=25)

        assert evaluate_alert(item, new, previous, never_cooling) is None

    @pytest.mark.parametrize(
        "mode,value,price,discount,expected",
        [
            (ThresholdMode.PRICE, 800, 750, 25, True),
            (ThresholdMode.PRICE, 700, 750, 25, False),
            (ThresholdMode.PRICE, 0, 750, 25, True),
            (ThresholdMode.DISCOUNT, 25, 750, 25, True),
            (ThresholdMode.DISCOUNT, 50, 750, 25, False),
            (ThresholdMode.ANY_SALE, 0, 750, 5, True),
        ],
    )
    def test_thresholds(self, item, mode, value, price, discount, expected):
        item.alert_config = AlertConfig(mode, value)
        previous = record(1000, 500)
        new = record(price, 500, discount=discount)

        alert = evaluate_alert(item, new, previous, never_cooling)

        assert (alert is not None) is expected

    def test_disabled_alerts(self, item):
        item.alert_enabled = False

        assert evaluate_alert(item, record(700, 800, 30), record(1000, 800), never_cooling) is None

    def test_state_tagged_record_never_alerts(self, item):
        new = record(0, 0, source=PriceSource.FREE)

        assert evaluate_alert(item, new, record(1000, 800), never_cooling) is None

    def test_release_alert(self, item):
        alert = build_release_alert(item, record(1980, 1980))

        assert alert.kind == AlertKind.RELEASE
        assert alert.trigger_price == 1980
        assert alert.previous_price is None


class TestResolveHistoricalLow:
    """Test cases for resolve_historical_low."""

    def test_first_observation_keeps_aggregated_value(self, item):
        new = record(1000, 600)

        assert resolve_historical_low(item, new, None).historical_low == 600

    def test_previous_floor_and_price_bound_the_low(self, item):
        previous = record(900, 800)
        new = record(1000, 1000)

        assert resolve_historical_low(item, new, previous).historical_low == 800

    def test_provider_low_below_current_lowers_floor(self, item):
        previous = record(1000, 800)
        new = record(1000, 500)

        assert resolve_historical_low(item, new, previous).historical_low == 500

    def test_provider_low_equal_to_current_is_ignored(self, item):
        previous = record(1000, 800)
        new = record(700, 700)

        resolved = resolve_historical_low(item, new, previous)

        assert resolved.historical_low == 800
        assert evaluate_alert(item, resolved, previous, never_cooling).kind == AlertKind.NEW_LOW

    def test_manual_override_wins(self, item):
        item.manual_historical_low = 1200
        previous = record(900, 800)

        assert resolve_historical_low(item, record(1000, 500), previous).historical_low == 1200

    def test_state_record_carries_previous_floor(self, item):
        previous = record(900, 800)
        new = record(0, 0, source=PriceSource.DELISTED)

        assert resolve_historical_low(item, new, previous).historical_low == 800
        assert resolve_historical_low(item, new, None).historical_low == 0

    def test_floor_never_increases_over_sequence(self, item):
        prices = [(1000, 1000), (1200, 1200), (800, 800), (900, 900), (850, 700)]
        previous = None
        floors = []
        for price, provider_low in prices:
            resolved = resolve_historical_low(item, record(price, provider_low), previous)
            floors.append(resolved.historical_low)
            previous = resolved

        assert floors == sorted(floors, reverse=True)


class TestAlertEvaluator:
    """Test cases for the store-bound evaluator."""

    def test_cooldown_queries_store_per_kind(self, item):
        store = Mock()
        store.count_alerts_since.side_effect = lambda item_id, kind, since: 1 if kind == AlertKind.NEW_LOW else 0
        evaluator = AlertEvaluator(store, cooldown_hours=6)
        now = datetime(2024, 1, 1, 12, 0, 0)

        alert = evaluator.evaluate(item, record(700, 800, 30), record(1000, 800), now=now)

        assert alert.kind == AlertKind.SALE_START
        first_call = store.count_alerts_since.call_args_list[0]
        assert first_call.args == (1, AlertKind.NEW_LOW, now - timedelta(hours=6))

    def test_zero_cooldown_skips_store(self, item):
        store = Mock()
        evaluator = AlertEvaluator(store, cooldown_hours=0)

        alert = evaluator.evaluate(item, record(700, 800, 30), record(1000, 800))

        assert alert.kind == AlertKind.NEW_LOW
        store.count_alerts_since.assert_not_called()

    def test_with_sqlite_store(self, item, store):
        stored = store.add_item(TrackedItem(external_id=620, name="Portal 2"))
        item.id = stored.id
        evaluator = AlertEvaluator(store, cooldown_hours=6)
        store.add_alert(
            AlertEvent(item_id=item.id, kind=AlertKind.NEW_LOW, trigger_price=700, created_at=datetime.now() - timedelta(hours=1))
        )

        alert = evaluator.evaluate(item, record(650, 700, 0, on_sale=False), record(700, 700))

        assert alert is None
