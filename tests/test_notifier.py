"""
Unit tests for the webhook notifier.
"""

from datetime import datetime
from unittest.mock import Mock, patch

import pytest
from requests.exceptions import ConnectionError, HTTPError

from price_sentinel.components.notifier import (
    BaseNotifier,
    DiscordNotifier,
    create_notifier,
    format_price,
)
from price_sentinel.models.alert import AlertEvent, AlertKind
from price_sentinel.models.config import NotifierConfig
from price_sentinel.models.delivery import DeliveryResult
from price_sentinel.models.item import AlertConfig, ThresholdMode, TrackedItem

WEBHOOK_URL = "https://discord.com/api/webhooks/123/abc"


class MockNotifier(BaseNotifier):
    """Test implementation of BaseNotifier."""

    def __init__(self, failures: int = 0, max_retries: int = 3):
        super().__init__(max_retries, retry_delay=0)
        self.failures = failures
        self.send_attempts = 0

    def _send_message(self, alert, item):
        self.send_attempts += 1
        if self.send_attempts <= self.failures:
            raise ConnectionError("webhook unreachable")

    def test_connection(self) -> bool:
        return True


@pytest.fixture
def item():
    return TrackedItem(
        id=1,
        external_id=620,
        name="Portal 2",
        alert_config=AlertConfig(ThresholdMode.DISCOUNT, 50),
    )


@pytest.fixture
def sale_alert():
    return AlertEvent(
        item_id=1,
        kind=AlertKind.SALE_START,
        trigger_price=990,
        previous_price=1980,
        discount_percent=50,
        created_at=datetime(2024, 6, 1, 12, 0, 0),
    )


class TestBaseNotifier:
    """Test cases for BaseNotifier retry behaviour."""

    def test_notify_success_first_attempt(self, sale_alert, item):
        """Test successful delivery on first attempt."""
        notifier = MockNotifier()

        result = notifier.notify(sale_alert, item)

        assert isinstance(result, DeliveryResult)
        assert result.success is True
        assert result.error_message is None
        assert result.alert_kind == AlertKind.SALE_START
        assert result.attempts == 1
        assert notifier.send_attempts == 1
        assert notifier.get_stats() == {"sent": 1, "failed": 0}

    def test_notify_success_after_retries(self, sale_alert, item):
        """Test successful delivery after initial failures."""
        notifier = MockNotifier(failures=2)

        result = notifier.notify(sale_alert, item)

        assert result.success is True
        assert result.attempts == 3
        assert notifier.send_attempts == 3

    def test_notify_failure_after_all_retries(self, sale_alert, item):
        """Test delivery failure once retries are exhausted."""
        notifier = MockNotifier(failures=10, max_retries=2)

        result = notifier.notify(sale_alert, item)

        assert result.success is False
        assert "Failed after 3 attempts" in result.error_message
        assert notifier.send_attempts == 3
        assert notifier.get_stats() == {"sent": 0, "failed": 1}
        assert result.delivered_at is None
        assert result.attempts == 3

    @patch("price_sentinel.components.notifier.time.sleep")
    def test_retry_backoff(self, mock_sleep, sale_alert, item):
        """Test exponential backoff between attempts."""
        notifier = MockNotifier(failures=2)
        notifier.retry_delay = 0.5

        notifier.notify(sale_alert, item)

        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0]


class TestDiscordNotifier:
    """Test cases for DiscordNotifier."""

    def test_sale_payload(self, sale_alert, item):
        """Test embed for a sale alert."""
        notifier = DiscordNotifier(WEBHOOK_URL)

        payload = notifier.build_payload(sale_alert, item)

        embed = payload["embeds"][0]
        assert embed["title"] == "Sale started!"
        assert embed["url"] == "https://store.steampowered.com/app/620/"
        assert "Portal 2" in embed["description"]
        assert embed["timestamp"] == "2024-06-01T12:00:00"
        fields = {f["name"]: f["value"] for f in embed["fields"]}
        assert fields["Current price"] == "¥990"
        assert fields["Discount"] == "50% OFF"
        assert fields["Previous price"] == "¥1,980"
        assert fields["Alert condition"] == "Discount of 50% or more"

    def test_new_low_payload(self, item):
        """Test embed for a new historical low."""
        alert = AlertEvent(item_id=1, kind=AlertKind.NEW_LOW, trigger_price=700, previous_price=800)

        embed = DiscordNotifier(WEBHOOK_URL).build_payload(alert, item)["embeds"][0]

        fields = {f["name"]: f["value"] for f in embed["fields"]}
        assert embed["title"] == "New all-time low!"
        assert fields["Previous low"] == "¥800"
        assert "Alert condition" not in fields
        assert "Discount" not in fields

    def test_release_payload(self, item):
        """Test embed for a release."""
        alert = AlertEvent(item_id=1, kind=AlertKind.RELEASE, trigger_price=0)

        embed = DiscordNotifier(WEBHOOK_URL).build_payload(alert, item)["embeds"][0]

        assert embed["title"] == "Released!"
        assert embed["fields"][0]["value"] == "Free"

    def test_send_posts_payload(self, sale_alert, item):
        """Test that notify posts the embed to the webhook."""
        notifier = DiscordNotifier(WEBHOOK_URL, retry_delay=0)
        response = Mock()
        response.raise_for_status.return_value = None

        with patch.object(notifier.session, "post", return_value=response) as mock_post:
            result = notifier.notify(sale_alert, item)

        assert result.success is True
        args, kwargs = mock_post.call_args
        assert args[0] == WEBHOOK_URL
        assert kwargs["json"]["embeds"][0]["title"] == "Sale started!"

    def test_http_error_is_retried(self, sale_alert, item):
        """Test that HTTP errors are retried and reported."""
        notifier = DiscordNotifier(WEBHOOK_URL, max_retries=1, retry_delay=0)
        response = Mock()
        response.raise_for_status.side_effect = HTTPError("400 Bad Request")

        with patch.object(notifier.session, "post", return_value=response) as mock_post:
            result = notifier.notify(sale_alert, item)

        assert result.success is False
        assert "400 Bad Request" in result.error_message
        assert mock_post.call_count == 2

    def test_connection(self):
        """Test the webhook connection probe."""
        notifier = DiscordNotifier(WEBHOOK_URL)
        ok = Mock()
        ok.raise_for_status.return_value = None

        with patch.object(notifier.session, "post", return_value=ok):
            assert notifier.test_connection() is True

        with patch.object(notifier.session, "post", side_effect=ConnectionError("down")):
            assert notifier.test_connection() is False


class TestHelpers:
    """Test cases for module helpers."""

    @pytest.mark.parametrize(
        "value,expected",
        [(None, "-"), (0, "Free"), (1980, "¥1,980"), (99.6, "¥100")],
    )
    def test_format_price(self, value, expected):
        assert format_price(value) == expected

    def test_create_notifier(self):
        notifier = create_notifier(NotifierConfig(enabled=True, discord_webhook_url=WEBHOOK_URL, max_retries=5))

        assert isinstance(notifier, DiscordNotifier)
        assert notifier.max_retries == 5

    def test_create_notifier_disabled(self):
        assert create_notifier(NotifierConfig(enabled=False, discord_webhook_url=WEBHOOK_URL)) is None
        assert create_notifier(NotifierConfig(enabled=True)) is None
