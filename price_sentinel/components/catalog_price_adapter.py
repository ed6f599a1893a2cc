"""
Catalog-price adapter for an IsThereAnyDeal-style price index.

Storefront app ids are resolved to provider ids through a lookup endpoint,
then current prices and historical lows are read together from the overview
endpoint. Both endpoints are batched within provider limits.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from ..models.price import Offer, OfferKind
from ..utils.error_handling import ConfigurationError
from ..utils.logging import get_logger
from .provider_client import ProviderError, RateLimitedClient

logger = get_logger("catalog_price_adapter")

LOOKUP_BATCH_SIZE = 50
OVERVIEW_BATCH_SIZE = 20
DEFAULT_SHOP_ID = 61


def _chunks(values: List[Any], size: int) -> Iterable[List[Any]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def _amount(node: Any, *path: str) -> Optional[float]:
    """Walk nested dicts and return a numeric leaf, or None."""
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    if isinstance(node, bool) or not isinstance(node, (int, float)):
        return None
    return float(node)


class CatalogPriceAdapter:
    """Source adapter for the catalog-price provider."""

    def __init__(
        self,
        client: RateLimitedClient,
        api_key: Optional[str],
        country: str = "JP",
        shop_id: int = DEFAULT_SHOP_ID,
        batch_pause: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize adapter.

        Raises:
            ConfigurationError: If no API key is configured
        """
        if not api_key:
            raise ConfigurationError("Catalog price API key is not configured")

        self.client = client
        self.api_key = api_key
        self.country = country
        self.shop_id = shop_id
        self.batch_pause = batch_pause
        self._sleep = sleep
        self._id_cache: Dict[int, str] = {}

    @property
    def name(self) -> str:
        return "catalog"

    @property
    def lookup_path(self) -> str:
        return f"/lookup/id/shop/{self.shop_id}/v1"

    async def lookup_ids(self, external_ids: List[int]) -> Dict[int, str]:
        """
        Resolve storefront app ids to provider ids.

        Returns:
            Mapping of the ids the provider knows; unknown ids are omitted
        """
        resolved = {i: self._id_cache[i] for i in external_ids if i in self._id_cache}
        pending = [i for i in dict.fromkeys(external_ids) if i not in self._id_cache]

        for index, batch in enumerate(_chunks(pending, LOOKUP_BATCH_SIZE)):
            if index > 0:
                await self._sleep(self.batch_pause)

            response = await self.client.post(
                self.lookup_path,
                [f"app/{external_id}" for external_id in batch],
                params={"key": self.api_key},
            )
            if not isinstance(response, dict):
                raise ProviderError(
                    f"{self.client.provider_name}_INVALID_RESPONSE",
                    "Lookup response is not an object",
                )

            for external_id in batch:
                provider_id = response.get(f"app/{external_id}")
                if provider_id:
                    self._id_cache[external_id] = provider_id
                    resolved[external_id] = provider_id
                else:
                    logger.debug(f"No catalog id for app {external_id}")

        return resolved

    async def get_overviews(self, external_ids: List[int]) -> Dict[int, Optional[Offer]]:
        """
        Fetch current price and historical low for several apps.

        Returns:
            Mapping of every requested id to an Offer, or None when unknown
        """
        overviews: Dict[int, Optional[Offer]] = {i: None for i in external_ids}
        id_map = await self.lookup_ids(external_ids)
        if not id_map:
            return overviews

        reverse = {provider_id: external_id for external_id, provider_id in id_map.items()}
        provider_ids = list(reverse)

        for index, batch in enumerate(_chunks(provider_ids, OVERVIEW_BATCH_SIZE)):
            if index > 0:
                await self._sleep(self.batch_pause)

            response = await self.client.post(
                "/games/overview/v2",
                batch,
                params={"key": self.api_key, "country": self.country, "shops": str(self.shop_id)},
            )
            prices = response.get("prices") if isinstance(response, dict) else None
            if not isinstance(prices, list):
                raise ProviderError(
                    f"{self.client.provider_name}_INVALID_RESPONSE",
                    "Overview response has no price list",
                )

            for entry in prices:
                if not isinstance(entry, dict) or entry.get("id") not in reverse:
                    continue
                overviews[reverse[entry["id"]]] = self._parse_overview(entry)

        return overviews

    def _parse_overview(self, entry: Dict[str, Any]) -> Offer:
        current = entry.get("current") or {}
        current_price = _amount(current, "price", "amount") or 0.0
        regular_price = _amount(current, "regular", "amount") or current_price
        cut = _amount(current, "cut") or 0.0
        lowest = _amount(entry.get("lowest"), "price", "amount")

        return Offer(
            kind=OfferKind.PAID,
            current_price=current_price,
            original_price=regular_price,
            discount_percent=int(cut),
            historical_low=lowest,
            currency=(current.get("price") or {}).get("currency") if isinstance(current, dict) else None,
        )

    async def get_offer(self, external_id: int) -> Optional[Offer]:
        """Fetch the overview for one app."""
        overviews = await self.get_overviews([external_id])
        return overviews.get(external_id)

    async def get_historical_low(self, external_id: int) -> Optional[float]:
        """Return the provider's all-time low for one app."""
        offer = await self.get_offer(external_id)
        if offer is None or not offer.historical_low:
            return None
        return offer.historical_low

    async def health_check(self) -> bool:
        """Probe the deals endpoint."""
        try:
            response = await self.client.get("/deals/v2", params={"key": self.api_key, "limit": 1})
            return response is not None
        except ProviderError as e:
            logger.warning(f"Catalog price health check failed: {e}")
            return False
