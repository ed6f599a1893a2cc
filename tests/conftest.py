"""
Pytest configuration and shared fixtures.

This module provides common fixtures for the Price Sentinel test suite:
a recording sleep, scripted provider clients, sample items and offers and
a temporary SQLite store.
"""

import pytest

from fakes import FakeSession, RecordingSleep
from price_sentinel.components.provider_client import RateLimitedClient
from price_sentinel.models.item import AlertConfig, ThresholdMode, TrackedItem
from price_sentinel.models.price import Offer, OfferKind
from price_sentinel.services.catalog_store import SQLiteCatalogStore


@pytest.fixture
def recording_sleep():
    """Sleep replacement that returns immediately."""
    return RecordingSleep()


@pytest.fixture
def fake_session():
    """Empty scripted aiohttp session."""
    return FakeSession()


@pytest.fixture
def make_client(recording_sleep):
    """Factory for provider clients bound to a scripted session."""

    def factory(session: FakeSession, provider_name: str = "catalog", min_interval: float = 0.0):
        return RateLimitedClient(
            provider_name,
            "https://api.example.com",
            min_interval,
            timeout=5,
            session=session,
            sleep=recording_sleep,
        )

    return factory


@pytest.fixture
def sample_item():
    """A tracked item with a price threshold."""
    return TrackedItem(
        id=1,
        external_id=620,
        name="Portal 2",
        alert_config=AlertConfig(ThresholdMode.PRICE, 1000),
    )


@pytest.fixture
def paid_offer():
    """A storefront offer for a paid game at full price."""
    return Offer(
        kind=OfferKind.PAID,
        current_price=1980.0,
        original_price=1980.0,
        discount_percent=0,
        name="Portal 2",
        currency="JPY",
    )


@pytest.fixture
def store(tmp_path):
    """Temporary SQLite catalog store."""
    catalog_store = SQLiteCatalogStore(tmp_path / "data" / "test.db")
    yield catalog_store
    catalog_store.close()
