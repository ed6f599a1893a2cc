"""
Tests for the SQLite catalog store.
"""

from datetime import datetime, timedelta

import pytest

from price_sentinel.models.alert import AlertEvent, AlertKind
from price_sentinel.models.item import AlertConfig, ThresholdMode, TrackedItem
from price_sentinel.models.price import PriceRecord, PriceSource


def make_record(item_id, price, recorded_at, low=None, source=PriceSource.CATALOG):
    return PriceRecord(
        item_id=item_id,
        current_price=price,
        original_price=price,
        discount_percent=0,
        historical_low=low if low is not None else price,
        is_on_sale=False,
        source=source,
        recorded_at=recorded_at,
    )


@pytest.fixture
def portal(store):
    return store.add_item(
        TrackedItem(
            external_id=620,
            name="Portal 2",
            alert_config=AlertConfig(ThresholdMode.DISCOUNT, 50),
        )
    )


class TestItems:
    """Test cases for item storage."""

    def test_add_and_get_item(self, store, portal):
        loaded = store.get_item(620)

        assert loaded.id == portal.id
        assert loaded.name == "Portal 2"
        assert loaded.alert_config.threshold_mode == ThresholdMode.DISCOUNT
        assert loaded.alert_config.threshold_value == 50
        assert loaded.was_unreleased is False

    def test_enabled_items_only(self, store, portal):
        other = store.add_item(TrackedItem(external_id=730, name="CS2"))
        store.set_item_enabled(other.id, False)

        assert [i.external_id for i in store.get_enabled_items()] == [620]

    def test_updates(self, store, portal):
        store.update_item_name(portal.id, "Portal 2: Deluxe")
        store.update_alert_config(portal.id, AlertConfig(ThresholdMode.PRICE, 500))
        store.set_manual_historical_low(portal.id, 300)
        store.set_was_unreleased(portal.id, True)

        loaded = store.get_item(620)
        assert loaded.name == "Portal 2: Deluxe"
        assert loaded.alert_config == AlertConfig(ThresholdMode.PRICE, 500)
        assert loaded.manual_historical_low == 300
        assert loaded.was_unreleased is True

    def test_negative_manual_low_rejected(self, store, portal):
        with pytest.raises(ValueError):
            store.set_manual_historical_low(portal.id, -1)


class TestPriceHistory:
    """Test cases for price history."""

    def test_latest_record(self, store, portal):
        now = datetime.now()
        store.add_price_record(make_record(portal.id, 1000, now - timedelta(hours=2)))
        store.add_price_record(make_record(portal.id, 800, now - timedelta(hours=1), low=800))

        latest = store.get_latest_record(portal.id)

        assert latest.current_price == 800
        assert latest.source == PriceSource.CATALOG
        assert len(store.get_price_history(portal.id)) == 2

    def test_no_history(self, store, portal):
        assert store.get_latest_record(portal.id) is None

    def test_state_record_round_trip(self, store, portal):
        store.add_price_record(make_record(portal.id, 0, datetime.now(), low=0, source=PriceSource.UNRELEASED))

        latest = store.get_latest_record(portal.id)

        assert latest.source == PriceSource.UNRELEASED
        assert latest.is_priced is False


class TestAlerts:
    """Test cases for alert storage."""

    def test_count_alerts_since_is_per_kind(self, store, portal):
        now = datetime.now()
        store.add_alert(AlertEvent(portal.id, AlertKind.NEW_LOW, 700, 800, created_at=now - timedelta(hours=1)))
        store.add_alert(AlertEvent(portal.id, AlertKind.SALE_START, 700, 1000, created_at=now - timedelta(hours=10)))

        since = now - timedelta(hours=6)
        assert store.count_alerts_since(portal.id, AlertKind.NEW_LOW, since) == 1
        assert store.count_alerts_since(portal.id, AlertKind.SALE_START, since) == 0

    def test_mark_notified(self, store, portal):
        alert = store.add_alert(AlertEvent(portal.id, AlertKind.RELEASE, 1980))

        store.mark_alert_notified(alert.id)

        assert store.get_alerts(portal.id)[0].notified is True


class TestMaintenance:
    """Test cases for retention cleanup and settings."""

    def test_cleanup_keeps_latest_record_per_item(self, store, portal):
        old = datetime.now() - timedelta(days=400)
        other = store.add_item(TrackedItem(external_id=730, name="CS2"))
        store.add_price_record(make_record(portal.id, 1000, old))
        store.add_price_record(make_record(portal.id, 900, old + timedelta(days=1)))
        store.add_price_record(make_record(other.id, 500, old))
        store.add_price_record(make_record(other.id, 450, datetime.now()))
        store.add_alert(AlertEvent(portal.id, AlertKind.NEW_LOW, 900, 1000, created_at=old))

        removed = store.cleanup_older_than(365)

        assert removed == {"price_history": 2, "alerts": 1}
        assert store.get_latest_record(portal.id).current_price == 900
        assert [r.current_price for r in store.get_price_history(other.id)] == [450]

    def test_last_run_time(self, store):
        assert store.get_last_run_time() is None

        when = datetime(2024, 5, 1, 3, 0, 0)
        store.set_last_run_time(when)
        store.set_last_run_time(when + timedelta(hours=1))

        assert store.get_last_run_time() == when + timedelta(hours=1)

    def test_stats(self, store, portal):
        store.add_price_record(make_record(portal.id, 1000, datetime.now()))

        stats = store.get_stats()

        assert stats["items"] == 1
        assert stats["price_records"] == 1
        assert stats["alerts"] == 0
