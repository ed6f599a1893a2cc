"""
Service layer for the Price Sentinel system.

This module contains the services that aggregate prices, persist the
catalog, load configuration and schedule recurring jobs.
"""

from .aggregation_service import PriceAggregator
from .catalog_store import SQLiteCatalogStore
from .config_manager import ConfigurationManager
from .scheduler import MonitoringScheduler, PeriodicTask

__all__ = [
    "ConfigurationManager",
    "MonitoringScheduler",
    "PeriodicTask",
    "PriceAggregator",
    "SQLiteCatalogStore",
]
