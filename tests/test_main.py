"""
Tests for application wiring.
"""

import pytest

from fakes import FakeResponse, FakeSession
from price_sentinel.components.catalog_price_adapter import CatalogPriceAdapter
from price_sentinel.components.notifier import DiscordNotifier
from price_sentinel.components.storefront_adapter import StorefrontAdapter
from price_sentinel.main import build_scheduler
from price_sentinel.models.alert import AlertKind
from price_sentinel.models.config import Configuration, NotifierConfig, ProviderConfig
from price_sentinel.models.item import TrackedItem
from price_sentinel.models.price import PriceSource
from price_sentinel.utils.error_handling import ConfigurationError


def make_config(**provider_overrides):
    values = dict(catalog_api_key="secret", request_interval=0, storefront_request_interval=0)
    values.update(provider_overrides)
    return Configuration(providers=ProviderConfig(**values))


def attach(client, session):
    client.session = session
    client._owns_session = False


class TestBuildScheduler:
    """Test cases for build_scheduler."""

    def test_wires_components(self, store):
        config = make_config(concurrent_limit=3)
        config.notifier = NotifierConfig(
            enabled=True, discord_webhook_url="https://discord.com/api/webhooks/1/x"
        )

        scheduler = build_scheduler(config, store)

        aggregator = scheduler.orchestrator.aggregator
        assert isinstance(aggregator.catalog, CatalogPriceAdapter)
        assert isinstance(aggregator.storefront, StorefrontAdapter)
        assert aggregator.concurrent_limit == 3
        assert aggregator.catalog.client.provider_name == "CATALOG"
        assert aggregator.storefront.client.provider_name == "STOREFRONT"
        assert isinstance(scheduler.orchestrator.notifier, DiscordNotifier)
        assert scheduler.orchestrator.evaluator.cooldown_hours == 6.0

    def test_missing_catalog_key(self, store):
        with pytest.raises(ConfigurationError):
            build_scheduler(make_config(catalog_api_key=None), store)


@pytest.mark.integration
class TestMonitoringPipeline:
    """Full run over scripted provider sessions."""

    @pytest.mark.asyncio
    async def test_run_persists_merged_record_and_alert(self, store):
        scheduler = build_scheduler(make_config(), store)
        aggregator = scheduler.orchestrator.aggregator
        catalog_session = FakeSession(
            [
                FakeResponse(200, {"app/620": "game-uuid"}),
                FakeResponse(
                    200,
                    {
                        "prices": [
                            {
                                "id": "game-uuid",
                                "current": {
                                    "price": {"amount": 990},
                                    "regular": {"amount": 1980},
                                    "cut": 50,
                                },
                                "lowest": {"price": {"amount": 660}},
                            }
                        ]
                    },
                ),
            ]
        )
        storefront_session = FakeSession(
            [
                FakeResponse(
                    200,
                    {
                        "620": {
                            "success": True,
                            "data": {
                                "name": "Portal 2",
                                "type": "game",
                                "price_overview": {
                                    "currency": "JPY",
                                    "initial": 198000,
                                    "final": 99000,
                                    "discount_percent": 50,
                                },
                            },
                        }
                    },
                )
            ]
        )
        attach(aggregator.catalog.client, catalog_session)
        attach(aggregator.storefront.client, storefront_session)
        item = store.add_item(TrackedItem(external_id=620, name="portal2"))

        results = await scheduler.run_manual_monitoring()

        assert results[0].status == "success"
        record = store.get_latest_record(item.id)
        assert record.current_price == 990
        assert record.original_price == 1980
        assert record.discount_percent == 50
        assert record.historical_low == 660
        assert record.source == PriceSource.CATALOG
        assert store.get_item(620).name == "Portal 2"
        assert [a.kind for a in store.get_alerts(item.id)] == [AlertKind.SALE_START]

        await scheduler.shutdown()
        assert catalog_session.closed is False
