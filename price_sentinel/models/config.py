"""
Configuration models for the system.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse

# (minimum, maximum) accepted for each numeric setting
LIMITS: Dict[str, Tuple[float, float]] = {
    "interval_hours": (10 / 60, 24),
    "cooldown_hours": (1, 168),
    "concurrent_limit": (1, 5),
    "timeout_seconds": (5, 60),
    "retention_days": (7, 1095),
}


def _validate_url(url: str, label: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid {label} URL: {url}")


@dataclass
class ProviderConfig:
    """Settings for the storefront and catalog-price providers."""

    catalog_api_key: Optional[str] = None
    catalog_base_url: str = "https://api.isthereanydeal.com"
    storefront_base_url: str = "https://store.steampowered.com"
    country: str = "JP"
    language: str = "japanese"
    catalog_shop_id: int = 61
    request_interval: float = 2.0
    storefront_request_interval: float = 3.0
    timeout_seconds: int = 15
    concurrent_limit: int = 2

    def validate(self) -> bool:
        """Validate provider configuration."""
        _validate_url(self.catalog_base_url, "catalog")
        _validate_url(self.storefront_base_url, "storefront")

        if not self.country or len(self.country) != 2:
            raise ValueError("country must be a two-letter code")

        if self.request_interval < 0 or self.storefront_request_interval < 0:
            raise ValueError("Request intervals cannot be negative")

        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        if self.concurrent_limit <= 0:
            raise ValueError("concurrent_limit must be positive")

        return True


@dataclass
class MonitoringConfig:
    """Settings for polling, alerting and retention."""

    interval_hours: float = 1.0
    cooldown_hours: float = 6.0
    retention_days: int = 365
    catch_up_delay_seconds: float = 5.0
    health_check_minutes: int = 15
    cleanup_hour: int = 3

    def validate(self) -> bool:
        """Validate monitoring configuration."""
        if self.interval_hours <= 0:
            raise ValueError("interval_hours must be positive")

        if self.cooldown_hours < 0:
            raise ValueError("cooldown_hours cannot be negative")

        if self.retention_days <= 0:
            raise ValueError("retention_days must be positive")

        if self.catch_up_delay_seconds < 0:
            raise ValueError("catch_up_delay_seconds cannot be negative")

        if self.health_check_minutes <= 0:
            raise ValueError("health_check_minutes must be positive")

        if not 0 <= self.cleanup_hour <= 23:
            raise ValueError("cleanup_hour must be between 0 and 23")

        return True


@dataclass
class NotifierConfig:
    """Settings for the outbound webhook notifier."""

    enabled: bool = False
    discord_webhook_url: Optional[str] = None
    max_retries: int = 3

    def validate(self) -> bool:
        """Validate notifier configuration."""
        if not self.enabled:
            return True

        if not self.discord_webhook_url:
            raise ValueError("discord_webhook_url is required when the notifier is enabled")

        if not self.discord_webhook_url.startswith("https://discord.com/api/webhooks/"):
            raise ValueError("Invalid Discord webhook URL format")

        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")

        return True


@dataclass
class LoggingConfig:
    """Settings for the logging manager."""

    log_dir: str = "logs"
    level: str = "INFO"
    max_file_size_mb: int = 10
    backup_count: int = 7

    def validate(self) -> bool:
        """Validate logging configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")

        if self.max_file_size_mb <= 0:
            raise ValueError("max_file_size_mb must be positive")

        if self.backup_count < 0:
            raise ValueError("backup_count cannot be negative")

        return True


@dataclass
class Configuration:
    """System configuration."""

    database_path: str = "data/price_sentinel.db"
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    notifier: NotifierConfig = field(default_factory=NotifierConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> bool:
        """Validate complete system configuration."""
        if not self.database_path or not self.database_path.strip():
            raise ValueError("database_path cannot be empty")

        self.providers.validate()
        self.monitoring.validate()
        self.notifier.validate()
        self.logging.validate()

        return True
