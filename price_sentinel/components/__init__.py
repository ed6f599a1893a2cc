"""
Core components for the Price Sentinel system.

This module contains the provider client and source adapters, alert
evaluation and the outbound notifier.
"""

from .alert_evaluator import AlertEvaluator, evaluate_alert, resolve_historical_low
from .catalog_price_adapter import CatalogPriceAdapter
from .notifier import BaseNotifier, DiscordNotifier, create_notifier
from .provider_client import ProviderError, RateLimitedClient
from .storefront_adapter import StorefrontAdapter

__all__ = [
    "AlertEvaluator",
    "BaseNotifier",
    "CatalogPriceAdapter",
    "DiscordNotifier",
    "ProviderError",
    "RateLimitedClient",
    "StorefrontAdapter",
    "create_notifier",
    "evaluate_alert",
    "resolve_historical_low",
]
