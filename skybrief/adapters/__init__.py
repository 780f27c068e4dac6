"""
Adapters for SkyBrief.

This module contains the concrete implementations of port interfaces
that handle upstream HTTP access and caching.
"""

from .cache import TTLCache
from .awc.client import AWCClient
from .awc.fetchers import AWCWeatherSource

__all__ = ["TTLCache", "AWCClient", "AWCWeatherSource"]
