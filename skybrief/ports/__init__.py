"""
Port interfaces for SkyBrief.

This module defines the protocols the orchestrator depends on.
"""

from .cache import CachePort
from .weather import WeatherSourcePort

__all__ = [
    "CachePort",
    "WeatherSourcePort",
]
