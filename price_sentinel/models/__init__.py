"""
Data models for the Price Sentinel system.

This module contains the data classes used to represent tracked items,
price snapshots, alerts, run progress and configuration.
"""

from .alert import AlertEvent, AlertKind
from .config import (
    Configuration,
    LoggingConfig,
    MonitoringConfig,
    NotifierConfig,
    ProviderConfig,
)
from .delivery import DeliveryResult
from .item import AlertConfig, ThresholdMode, TrackedItem
from .price import Offer, OfferKind, PriceRecord, PriceSource
from .progress import ErrorDetail, FetchResult, MonitoringResult, RunProgress

__all__ = [
    "AlertConfig",
    "AlertEvent",
    "AlertKind",
    "Configuration",
    "DeliveryResult",
    "ErrorDetail",
    "FetchResult",
    "LoggingConfig",
    "MonitoringConfig",
    "MonitoringResult",
    "NotifierConfig",
    "Offer",
    "OfferKind",
    "PriceRecord",
    "PriceSource",
    "ProviderConfig",
    "RunProgress",
    "ThresholdMode",
    "TrackedItem",
]
