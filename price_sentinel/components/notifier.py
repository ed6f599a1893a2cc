"""
Alert notification components for the Price Sentinel system.

This module delivers alert events to an outbound webhook with retry logic
and error handling. Delivery is best-effort: failures are reported in the
returned DeliveryResult and never raised.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..models.alert import AlertEvent, AlertKind
from ..models.config import NotifierConfig
from ..models.delivery import DeliveryResult
from ..models.item import ThresholdMode, TrackedItem

logger = logging.getLogger(__name__)

STORE_URL = "https://store.steampowered.com/app/{external_id}/"

EMBED_STYLES = {
    AlertKind.NEW_LOW: ("New all-time low!", 0xFF4444, "**{name}** hit a new historical low."),
    AlertKind.SALE_START: ("Sale started!", 0x44FF44, "**{name}** just went on sale."),
    AlertKind.RELEASE: ("Released!", 0x4444FF, "**{name}** is now released."),
}


def format_price(value: Optional[float]) -> str:
    if value is None:
        return "-"
    if value <= 0:
        return "Free"
    return f"¥{value:,.0f}"


class BaseNotifier(ABC):
    """Base class for notifiers with common retry logic."""

    def __init__(self, max_retries: int = 3, retry_delay: float = 1.0):
        """
        Initialize base notifier.

        Args:
            max_retries: Maximum number of retry attempts
            retry_delay: Initial delay between retries in seconds
        """
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session = self._create_session()
        self.sent_count = 0
        self.failed_count = 0

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry configuration."""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "POST"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def notify(self, alert: AlertEvent, item: TrackedItem) -> DeliveryResult:
        """
        Send an alert with retry logic.

        Args:
            alert: Alert event to deliver
            item: Item the alert belongs to

        Returns:
            DeliveryResult: Result of delivery attempt
        """
        start_time = datetime.now()
        last_error = None

        for attempt in range(self.max_retries + 1):
            try:
                self._send_message(alert, item)

                result = DeliveryResult.delivered(alert, attempts=attempt + 1)
                logger.info(
                    f"{alert.kind.value} alert for {item.display_name} sent in "
                    f"{(result.delivered_at - start_time).total_seconds():.2f}s"
                )
                self.sent_count += 1
                return result

            except (requests.RequestException, ValueError) as e:
                last_error = str(e)
                logger.warning(f"Send attempt {attempt + 1} failed: {last_error}")

                if attempt < self.max_retries:
                    sleep_time = self.retry_delay * (2**attempt)
                    logger.info(f"Retrying in {sleep_time:.1f} seconds...")
                    time.sleep(sleep_time)

        self.failed_count += 1
        error_msg = f"Failed after {self.max_retries + 1} attempts. Last error: {last_error}"
        logger.error(error_msg)

        return DeliveryResult.failed(alert, attempts=self.max_retries + 1, error=error_msg)

    @abstractmethod
    def _send_message(self, alert: AlertEvent, item: TrackedItem) -> None:
        """
        Platform-specific sending implementation.

        Raises:
            requests.RequestException: If the request fails
        """

    @abstractmethod
    def test_connection(self) -> bool:
        """Test connection to the notification target."""

    def get_stats(self) -> Dict[str, Any]:
        return {"sent": self.sent_count, "failed": self.failed_count}


class DiscordNotifier(BaseNotifier):
    """Discord webhook notifier."""

    def __init__(self, webhook_url: str, max_retries: int = 3, retry_delay: float = 1.0):
        super().__init__(max_retries, retry_delay)
        self.webhook_url = webhook_url

    def build_payload(self, alert: AlertEvent, item: TrackedItem) -> Dict[str, Any]:
        """Build the webhook embed for an alert."""
        title, color, description = EMBED_STYLES[alert.kind]

        fields = [
            {"name": "Current price", "value": format_price(alert.trigger_price), "inline": True},
        ]
        if alert.discount_percent > 0:
            fields.append(
                {"name": "Discount", "value": f"{alert.discount_percent}% OFF", "inline": True}
            )
        if alert.kind == AlertKind.NEW_LOW and alert.previous_price:
            fields.append(
                {"name": "Previous low", "value": format_price(alert.previous_price), "inline": True}
            )
        elif alert.kind == AlertKind.SALE_START and alert.previous_price:
            fields.append(
                {"name": "Previous price", "value": format_price(alert.previous_price), "inline": True}
            )

        config = item.alert_config
        if alert.kind == AlertKind.SALE_START:
            if config.threshold_mode == ThresholdMode.PRICE and config.threshold_value > 0:
                condition = f"Price at or below {format_price(config.threshold_value)}"
            elif config.threshold_mode == ThresholdMode.DISCOUNT:
                condition = f"Discount of {config.threshold_value:g}% or more"
            else:
                condition = "Any sale"
            fields.append({"name": "Alert condition", "value": condition, "inline": False})

        return {
            "embeds": [
                {
                    "title": title,
                    "description": description.format(name=item.display_name),
                    "url": STORE_URL.format(external_id=item.external_id),
                    "color": color,
                    "fields": fields,
                    "timestamp": alert.created_at.isoformat(),
                }
            ]
        }

    def _send_message(self, alert: AlertEvent, item: TrackedItem) -> None:
        response = self.session.post(
            self.webhook_url, json=self.build_payload(alert, item), timeout=30
        )
        response.raise_for_status()

    def test_connection(self) -> bool:
        """Test the webhook with a short message."""
        try:
            response = self.session.post(
                self.webhook_url,
                json={"content": "Price Sentinel connection test"},
                timeout=10,
            )
            response.raise_for_status()
            logger.info("Discord webhook connection test successful")
            return True
        except requests.RequestException as e:
            logger.error(f"Failed to reach Discord webhook: {e}")
            return False


def create_notifier(settings: NotifierConfig) -> Optional[BaseNotifier]:
    """
    Create the configured notifier.

    Returns:
        Notifier, or None when notifications are disabled
    """
    if not settings.enabled or not settings.discord_webhook_url:
        logger.info("Notifications disabled")
        return None

    return DiscordNotifier(
        webhook_url=settings.discord_webhook_url,
        max_retries=settings.max_retries,
    )
