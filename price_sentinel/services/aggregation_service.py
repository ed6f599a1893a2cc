"""
Price aggregation service.

Reconciles the storefront and catalog-price readings for an item into one
canonical PriceRecord, and fetches many items in rate-friendly batches with
retry and progress reporting.
"""

import asyncio
import inspect
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..components.provider_client import ProviderError
from ..interfaces import IProviderAdapter
from ..models.item import TrackedItem
from ..models.price import Offer, OfferKind, PriceRecord, PriceSource
from ..models.progress import ErrorDetail, FetchResult
from ..utils.error_handling import RetryConfig, retry_async
from ..utils.logging import get_logger

ProgressCallback = Callable[[str, int, int, FetchResult], Union[None, Awaitable[None]]]

STATE_SOURCES = {
    OfferKind.FREE: PriceSource.FREE,
    OfferKind.UNRELEASED: PriceSource.UNRELEASED,
    OfferKind.DELISTED: PriceSource.DELISTED,
}


class PriceAggregator:
    """Merges per-source offers into canonical price records."""

    def __init__(
        self,
        catalog: IProviderAdapter,
        storefront: IProviderAdapter,
        concurrent_limit: int = 2,
        batch_pause: float = 1.0,
        manual_pause: float = 2.0,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize aggregator.

        Args:
            catalog: Catalog-price adapter
            storefront: Storefront adapter
            concurrent_limit: Items fetched concurrently in scheduled runs
            batch_pause: Pause between scheduled batches in seconds
            manual_pause: Pause between items in manual runs in seconds
            retry_config: Retry policy for each item fetch
            sleep: Coroutine used for pauses and retry waits
        """
        self.catalog = catalog
        self.storefront = storefront
        self.concurrent_limit = max(1, concurrent_limit)
        self.batch_pause = batch_pause
        self.manual_pause = manual_pause
        self.retry_config = retry_config or RetryConfig(
            max_attempts=3, base_delay=2.0, max_delay=8.0, throttle_delay=10.0
        )
        self._sleep = sleep
        self.logger = get_logger("aggregation_service")

    async def get_offer(self, item: TrackedItem) -> Optional[PriceRecord]:
        """
        Build the canonical price record for one item.

        Returns:
            PriceRecord, or None when no source has a usable price

        Raises:
            Exception: An adapter error, when no usable price was obtained
        """
        catalog_result, storefront_result = await asyncio.gather(
            self.catalog.get_offer(item.external_id),
            self.storefront.get_offer(item.external_id),
            return_exceptions=True,
        )

        errors: List[BaseException] = []
        catalog_offer = self._unwrap("catalog", item, catalog_result, errors)
        storefront_offer = self._unwrap("storefront", item, storefront_result, errors)

        canonical_name = storefront_offer.name if storefront_offer else None
        release_date = storefront_offer.release_date if storefront_offer else None

        if storefront_offer and storefront_offer.kind in STATE_SOURCES:
            self.logger.info(
                f"{item.display_name} is {storefront_offer.kind.value}",
                extra={"external_id": item.external_id},
            )
            return PriceRecord(
                item_id=item.id or 0,
                current_price=0.0,
                original_price=0.0,
                discount_percent=0,
                historical_low=0.0,
                is_on_sale=False,
                source=STATE_SOURCES[storefront_offer.kind],
                release_date=release_date,
                canonical_name=canonical_name,
            )

        record = self._merge(item, catalog_offer, storefront_offer)
        if record is None:
            if errors:
                throttled = [e for e in errors if getattr(e, "is_throttled", False)]
                raise (throttled or errors)[0]
            self.logger.warning(
                f"No valid price data found for {item.display_name}",
                extra={"external_id": item.external_id},
            )
            return None

        record.release_date = release_date
        record.canonical_name = canonical_name
        # Only the storefront reports item state
        record.state_observed = storefront_offer is not None
        return record

    def _unwrap(
        self,
        source: str,
        item: TrackedItem,
        result: Union[Optional[Offer], BaseException],
        errors: List[BaseException],
    ) -> Optional[Offer]:
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            self.logger.warning(
                f"{source} data unavailable for {item.display_name}: {result}",
                extra={"external_id": item.external_id},
            )
            errors.append(result)
            return None
        return result

    def _merge(
        self,
        item: TrackedItem,
        catalog: Optional[Offer],
        storefront: Optional[Offer],
    ) -> Optional[PriceRecord]:
        catalog_price = catalog.current_price if catalog else 0.0
        storefront_price = storefront.current_price if storefront else 0.0

        use_catalog = catalog_price > 0
        current_price = catalog_price if use_catalog else storefront_price
        if current_price <= 0:
            return None

        if storefront and storefront.original_price > 0:
            original_price = storefront.original_price
        elif catalog and catalog.original_price > 0:
            original_price = catalog.original_price
        else:
            original_price = current_price

        catalog_cut = catalog.discount_percent if catalog else 0
        storefront_cut = storefront.discount_percent if storefront else 0
        discount = catalog_cut if use_catalog and catalog_cut > 0 else storefront_cut

        historical_low = catalog.historical_low if catalog and catalog.historical_low else 0.0
        if historical_low <= 0:
            historical_low = current_price

        return PriceRecord(
            item_id=item.id or 0,
            current_price=current_price,
            original_price=original_price,
            discount_percent=discount,
            historical_low=historical_low,
            is_on_sale=catalog_cut > 0 or storefront_cut > 0,
            source=PriceSource.CATALOG if use_catalog else PriceSource.STOREFRONT,
            recorded_at=datetime.now(),
        )

    async def _fetch_with_retry(self, item: TrackedItem) -> FetchResult:
        try:
            record = await retry_async(
                lambda: self.get_offer(item),
                self.retry_config,
                f"price fetch for {item.display_name}",
                retry_on=(ProviderError, asyncio.TimeoutError),
                sleep=self._sleep,
            )
            return FetchResult(item=item, record=record)
        except Exception as e:
            self.logger.error(
                f"Failed to fetch price for {item.display_name}: {e}",
                extra={"external_id": item.external_id},
            )
            return FetchResult(item=item, error=ErrorDetail.from_exception(e))

    async def _report(
        self,
        on_progress: Optional[ProgressCallback],
        result: FetchResult,
        completed: int,
        total: int,
    ) -> None:
        if on_progress is None:
            return
        try:
            outcome = on_progress(result.item.display_name, completed, total, result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self.logger.error(
                f"Progress callback failed for {result.item.display_name}: {e}",
                exc_info=True,
            )

    async def get_many(
        self,
        items: List[TrackedItem],
        is_manual_batch: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[FetchResult]:
        """
        Fetch canonical records for many items.

        Scheduled runs fetch ``concurrent_limit`` items at a time with a short
        pause between batches; manual runs go one item at a time with a longer
        pause.

        Returns:
            One FetchResult per item, in input order
        """
        total = len(items)
        batch_size = 1 if is_manual_batch else self.concurrent_limit
        pause = self.manual_pause if is_manual_batch else self.batch_pause
        results: List[FetchResult] = []
        completed = 0

        self.logger.info(
            f"Fetching prices for {total} items",
            extra={"batch_size": batch_size, "manual": is_manual_batch},
        )

        async def fetch_and_report(item: TrackedItem) -> FetchResult:
            nonlocal completed
            result = await self._fetch_with_retry(item)
            completed += 1
            await self._report(on_progress, result, completed, total)
            return result

        for start in range(0, total, batch_size):
            batch = items[start : start + batch_size]
            results.extend(await asyncio.gather(*(fetch_and_report(i) for i in batch)))

            if start + batch_size < total:
                await self._sleep(pause)

        return results

    async def health_check(self) -> Dict[str, bool]:
        """Check both providers."""
        catalog_ok, storefront_ok = await asyncio.gather(
            self.catalog.health_check(), self.storefront.health_check()
        )
        return {
            "catalog": bool(catalog_ok),
            "storefront": bool(storefront_ok),
            "overall": bool(catalog_ok and storefront_ok),
        }

    async def close(self) -> None:
        """Close both providers' HTTP clients."""
        for adapter in (self.catalog, self.storefront):
            client = getattr(adapter, "client", None)
            if client is not None:
                await client.close()
