"""
Price Sentinel

A monitoring service that polls storefront and catalog-price providers for
a catalog of tracked games, reconciles their readings, records price history
and raises alerts for new historical lows, sale starts and releases.
"""

__version__ = "0.1.0"
__author__ = "Price Sentinel Team"
