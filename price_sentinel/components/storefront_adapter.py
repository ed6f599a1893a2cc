"""
Storefront adapter.

Reads the public app-details endpoint and classifies each app as paid,
free, unreleased, DLC or delisted. Prices arrive in minor units.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

from ..models.price import Offer, OfferKind
from ..utils.logging import get_logger
from .provider_client import ProviderError, RateLimitedClient

logger = get_logger("storefront_adapter")

APP_DETAILS_PATH = "/api/appdetails"
HEALTH_CHECK_APP_ID = 730


def minor_to_display(amount: Any) -> float:
    """Convert a minor-unit amount to the display unit, rounding half up (1999 -> 20)."""
    value = Decimal(str(amount)) / Decimal(100)
    return float(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StorefrontAdapter:
    """Source adapter for the storefront's app-details API."""

    def __init__(
        self,
        client: RateLimitedClient,
        country: str = "JP",
        language: str = "japanese",
    ):
        self.client = client
        self.country = country
        self.language = language

    @property
    def name(self) -> str:
        return "storefront"

    def _invalid(self, external_id: int, message: str) -> ProviderError:
        return ProviderError(
            f"{self.client.provider_name}_INVALID_RESPONSE",
            message,
            {"external_id": external_id},
        )

    async def _fetch_entry(self, external_id: int) -> Optional[Dict[str, Any]]:
        """Return the app's ``data`` object, or None when the app is unknown."""
        response = await self.client.get(
            APP_DETAILS_PATH,
            params={"appids": str(external_id), "cc": self.country, "l": self.language},
        )

        if not isinstance(response, dict):
            raise self._invalid(external_id, "App details response is not an object")

        entry = response.get(str(external_id))
        if not isinstance(entry, dict):
            raise self._invalid(external_id, f"No entry for app {external_id}")

        if not entry.get("success"):
            return None

        data = entry.get("data")
        if not isinstance(data, dict):
            raise self._invalid(external_id, f"Entry for app {external_id} has no data")

        return data

    async def get_offer(self, external_id: int) -> Optional[Offer]:
        """
        Fetch and classify an app.

        Returns:
            Offer, or None when the storefront reports the app as unknown

        Raises:
            ProviderError: On transport failures or malformed payloads
        """
        data = await self._fetch_entry(external_id)
        if data is None:
            logger.debug(f"App {external_id} not found on storefront")
            return None

        return self._parse_offer(external_id, data)

    def _parse_offer(self, external_id: int, data: Dict[str, Any]) -> Offer:
        name = data.get("name")
        release = data.get("release_date") or {}
        release_date = release.get("date") or None

        if data.get("is_free"):
            return Offer(kind=OfferKind.FREE, name=name, release_date=release_date)

        if release.get("coming_soon"):
            return Offer(kind=OfferKind.UNRELEASED, name=name, release_date=release_date)

        overview = data.get("price_overview")
        kind = OfferKind.DLC if data.get("type") == "dlc" else OfferKind.PAID

        if kind == OfferKind.PAID and not overview:
            return Offer(kind=OfferKind.DELISTED, name=name, release_date=release_date)

        if not overview:
            return Offer(kind=kind, name=name, release_date=release_date)

        try:
            current = minor_to_display(overview["final"])
            original = minor_to_display(overview.get("initial", overview["final"]))
            discount = int(overview.get("discount_percent") or 0)
        except (KeyError, TypeError, ArithmeticError, ValueError) as e:
            raise self._invalid(external_id, f"Malformed price_overview: {e}") from e

        return Offer(
            kind=kind,
            current_price=current,
            original_price=original,
            discount_percent=discount,
            name=name,
            currency=overview.get("currency"),
            release_date=release_date,
        )

    async def get_app_info(self, external_id: int) -> Optional[Dict[str, Any]]:
        """Return basic app information used when adding an item to the catalog."""
        data = await self._fetch_entry(external_id)
        if data is None:
            return None

        return {
            "external_id": external_id,
            "name": data.get("name"),
            "type": data.get("type"),
            "header_image": data.get("header_image"),
            "is_free": bool(data.get("is_free")),
        }

    async def health_check(self) -> bool:
        """Probe the storefront with a well-known app."""
        try:
            await self._fetch_entry(HEALTH_CHECK_APP_ID)
            return True
        except ProviderError as e:
            logger.warning(f"Storefront health check failed: {e}")
            return False
