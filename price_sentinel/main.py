"""
Main entry point for the Price Sentinel system.
"""

import asyncio
import signal
import sys
from typing import Optional

from .components.alert_evaluator import AlertEvaluator
from .components.catalog_price_adapter import CatalogPriceAdapter
from .components.notifier import create_notifier
from .components.provider_client import RateLimitedClient
from .components.storefront_adapter import StorefrontAdapter
from .models.config import Configuration
from .orchestrator import MonitoringOrchestrator
from .services.aggregation_service import PriceAggregator
from .services.catalog_store import SQLiteCatalogStore
from .services.config_manager import ConfigurationManager
from .services.scheduler import MonitoringScheduler
from .utils.error_handling import get_error_tracker
from .utils.logging import get_logger, setup_logging


def build_scheduler(config: Configuration, store: SQLiteCatalogStore) -> MonitoringScheduler:
    """
    Wire providers, aggregator, evaluator, notifier and orchestrator.

    Raises:
        ConfigurationError: If the catalog price API key is missing
    """
    providers = config.providers

    catalog = CatalogPriceAdapter(
        RateLimitedClient(
            "catalog",
            providers.catalog_base_url,
            providers.request_interval,
            providers.timeout_seconds,
        ),
        api_key=providers.catalog_api_key,
        country=providers.country,
        shop_id=providers.catalog_shop_id,
    )
    storefront = StorefrontAdapter(
        RateLimitedClient(
            "storefront",
            providers.storefront_base_url,
            providers.storefront_request_interval,
            providers.timeout_seconds,
        ),
        country=providers.country,
        language=providers.language,
    )

    orchestrator = MonitoringOrchestrator(
        store=store,
        aggregator=PriceAggregator(catalog, storefront, concurrent_limit=providers.concurrent_limit),
        evaluator=AlertEvaluator(store, config.monitoring.cooldown_hours),
        notifier=create_notifier(config.notifier),
        error_tracker=get_error_tracker(),
    )
    return MonitoringScheduler(orchestrator, store, config.monitoring)


async def async_main(config_path: Optional[str] = None):
    """Async main application entry point."""
    config = ConfigurationManager(config_path).load_config()

    setup_logging(config.logging)
    logger = get_logger("main")
    logger.info("Starting Price Sentinel", extra={"config_path": config_path})

    store = SQLiteCatalogStore(config.database_path)
    try:
        scheduler = build_scheduler(config, store)
    except Exception:
        store.close()
        raise

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    scheduler.start()
    try:
        await stop_event.wait()
        logger.info("Shutdown signal received")
    finally:
        await scheduler.shutdown()
        store.close()
        logger.info("Price Sentinel stopped")


def main():
    """Main application entry point."""
    config_path = None

    if len(sys.argv) > 1:
        config_path = sys.argv[1]

    try:
        asyncio.run(async_main(config_path))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
    except Exception as e:
        print(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
