"""
Real-Time Weather Sync - Collector Module
Current-conditions lookups and condition-code mapping.
"""

from .conditions import classify, combine, weather_category
from .openweather_client import WeatherClient

__all__ = [
    "WeatherClient",
    "classify", "combine", "weather_category",
]
