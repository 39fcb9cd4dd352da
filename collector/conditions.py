"""
Real-Time Weather Sync - Condition Mapper
Maps OpenWeatherMap condition codes onto rain/thunder flags.

Codes are grouped by their leading digit:
  2xx thunderstorm, 3xx drizzle, 5xx rain, 6xx snow,
  7xx atmosphere, 800 clear, 80x clouds.
"""

from typing import Iterable

from core.models import CLEAR, WeatherFlags

RAIN_CATEGORIES = {2, 3, 5, 6}
THUNDER_CATEGORIES = {2}


def weather_category(code: int) -> int:
    """Leading decimal digit of a condition code (0 means no data)."""
    code = int(code)
    while code >= 10:
        code //= 10
    return code


def classify(code: int) -> WeatherFlags:
    category = weather_category(code)
    return WeatherFlags(
        rain=category in RAIN_CATEGORIES,
        thunder=category in THUNDER_CATEGORIES,
    )


def combine(codes: Iterable[int]) -> WeatherFlags:
    """OR together the flags of every condition entry."""
    flags = CLEAR
    for code in codes:
        flags = flags | classify(code)
    return flags
