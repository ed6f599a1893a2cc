"""
Configuration management system for Price Sentinel.
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..models.config import (
    LIMITS,
    Configuration,
    LoggingConfig,
    MonitoringConfig,
    NotifierConfig,
    ProviderConfig,
)
from ..utils.logging import get_logger

logger = get_logger("config_manager")

ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def clamp_setting(name: str, value: float) -> float:
    """Clamp a numeric setting to its allowed range, warning when it changes."""
    low, high = LIMITS[name]
    clamped = min(max(value, low), high)
    if clamped != value:
        logger.warning(f"{name}={value} is outside [{low:g}, {high:g}], using {clamped:g}")
    return clamped


class ConfigurationManager:
    """Manages loading, validation, and reloading of system configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file. If None, uses default paths.
        """
        self.config_path = config_path or self._find_config_file()
        self._config: Optional[Configuration] = None
        self._last_modified: Optional[float] = None

    def _find_config_file(self) -> str:
        """Find the configuration file in standard locations."""
        possible_paths = [
            "config/config.yaml",
            "config/config.yml",
            "config/config.json",
            "config.yaml",
            "config.yml",
            "config.json",
        ]

        for path in possible_paths:
            if os.path.exists(path):
                return path

        if os.path.exists("config/config.example.yaml"):
            raise ValueError(
                "No configuration file found. Please copy 'config/config.example.yaml' "
                "to 'config/config.yaml' and customize it for your needs."
            )

        raise ValueError(
            "No configuration file found. Please create a configuration file "
            "at one of these locations: " + ", ".join(possible_paths)
        )

    def load_config(self) -> Configuration:
        """
        Load configuration from file.

        Returns:
            Configuration object with validated settings.

        Raises:
            ValueError: If configuration is invalid or file cannot be read.
            FileNotFoundError: If configuration file doesn't exist.
        """
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                if self.config_path.endswith(".json"):
                    raw_config = json.load(f)
                else:
                    raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}") from e

        config = self.parse(raw_config or {})

        self._config = config
        self._last_modified = os.path.getmtime(self.config_path)
        logger.info(f"Configuration loaded from {self.config_path}")

        return config

    def parse(self, raw_config: Dict[str, Any]) -> Configuration:
        """Expand, parse, clamp and validate a raw configuration mapping."""
        if not isinstance(raw_config, dict):
            raise ValueError("Configuration root must be a mapping")

        config = self._parse_config(self._expand_env_vars(raw_config))
        self._apply_limits(config)
        config.validate()
        return config

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand ${VAR_NAME} references in configuration."""
        if isinstance(obj, dict):
            return {key: self._expand_env_vars(value) for key, value in obj.items()}
        if isinstance(obj, list):
            return [self._expand_env_vars(item) for item in obj]
        if isinstance(obj, str):

            def substitute(match):
                env_value = os.getenv(match.group(1))
                if env_value is None:
                    raise ValueError(f"Environment variable '{match.group(1)}' not found")
                return env_value

            return ENV_PATTERN.sub(substitute, obj)
        return obj

    def _parse_config(self, raw_config: Dict[str, Any]) -> Configuration:
        """Parse raw configuration dictionary into Configuration object."""
        try:
            providers_data = raw_config.get("providers") or {}
            catalog = providers_data.get("catalog") or {}
            storefront = providers_data.get("storefront") or {}
            defaults = ProviderConfig()

            providers = ProviderConfig(
                catalog_api_key=catalog.get("api_key") or None,
                catalog_base_url=catalog.get("base_url", defaults.catalog_base_url),
                catalog_shop_id=int(catalog.get("shop_id", defaults.catalog_shop_id)),
                request_interval=float(catalog.get("request_interval", defaults.request_interval)),
                storefront_base_url=storefront.get("base_url", defaults.storefront_base_url),
                storefront_request_interval=float(
                    storefront.get("request_interval", defaults.storefront_request_interval)
                ),
                country=providers_data.get("country", defaults.country),
                language=providers_data.get("language", defaults.language),
                timeout_seconds=int(providers_data.get("timeout_seconds", defaults.timeout_seconds)),
                concurrent_limit=int(
                    providers_data.get("concurrent_limit", defaults.concurrent_limit)
                ),
            )

            monitoring_data = raw_config.get("monitoring") or {}
            monitoring = MonitoringConfig(
                **{
                    key: monitoring_data[key]
                    for key in (
                        "interval_hours",
                        "cooldown_hours",
                        "retention_days",
                        "catch_up_delay_seconds",
                        "health_check_minutes",
                        "cleanup_hour",
                    )
                    if key in monitoring_data
                }
            )

            notifier_data = raw_config.get("notifier") or {}
            discord = notifier_data.get("discord") or {}
            notifier = NotifierConfig(
                enabled=bool(notifier_data.get("enabled", False)),
                discord_webhook_url=discord.get("webhook_url") or None,
                max_retries=int(notifier_data.get("max_retries", 3)),
            )

            logging_data = raw_config.get("logging") or {}
            logging_config = LoggingConfig(
                **{
                    key: logging_data[key]
                    for key in ("log_dir", "level", "max_file_size_mb", "backup_count")
                    if key in logging_data
                }
            )

            return Configuration(
                database_path=raw_config.get("database_path", "data/price_sentinel.db"),
                providers=providers,
                monitoring=monitoring,
                notifier=notifier,
                logging=logging_config,
            )

        except (TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Error parsing configuration: {e}") from e

    def _apply_limits(self, config: Configuration) -> None:
        config.monitoring.interval_hours = clamp_setting(
            "interval_hours", float(config.monitoring.interval_hours)
        )
        config.monitoring.cooldown_hours = clamp_setting(
            "cooldown_hours", float(config.monitoring.cooldown_hours)
        )
        config.monitoring.retention_days = int(
            clamp_setting("retention_days", config.monitoring.retention_days)
        )
        config.providers.timeout_seconds = int(
            clamp_setting("timeout_seconds", config.providers.timeout_seconds)
        )
        config.providers.concurrent_limit = int(
            clamp_setting("concurrent_limit", config.providers.concurrent_limit)
        )

    def get_config(self) -> Configuration:
        """
        Get current configuration, loading if necessary.

        Returns:
            Current configuration object.
        """
        if self._config is None:
            return self.load_config()
        return self._config

    def reload_if_changed(self) -> bool:
        """
        Reload configuration if file has been modified.

        Returns:
            True if configuration was reloaded, False otherwise.
        """
        if not os.path.exists(self.config_path):
            return False

        current_modified = os.path.getmtime(self.config_path)

        if self._last_modified is None or current_modified > self._last_modified:
            try:
                self.load_config()
                return True
            except (ValueError, OSError) as e:
                logger.error(f"Configuration reload failed, keeping current settings: {e}")
                return False

        return False

    def validate_config_file(self, config_path: str) -> bool:
        """
        Validate a configuration file without loading it into the manager.

        Raises:
            ValueError: If the file is invalid
        """
        path = Path(config_path)
        if not path.exists():
            raise ValueError(f"Configuration file not found: {config_path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f) if path.suffix == ".json" else yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}") from e

        self.parse(raw or {})
        return True
