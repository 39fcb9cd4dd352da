"""
Real-Time Weather Sync - Configuration
Endpoints, sync cadence and the settings object handed to the engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping

# ============================================================================
# API ENDPOINTS
# ============================================================================

# OpenWeatherMap geocoding (used once, to validate key + location)
OWM_GEO_ZIP_URL = "https://api.openweathermap.org/geo/1.0/zip"

# OpenWeatherMap current conditions
OWM_CURRENT_WEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"

HTTP_TIMEOUT_SECONDS = 10.0

# ============================================================================
# SCHEDULER CONFIGURATION
# ============================================================================

TIME_SYNC_INTERVAL_SECONDS = 1.0
WEATHER_SYNC_INTERVAL_SECONDS = 300.0

# ============================================================================
# SIMULATED CLOCK
# ============================================================================

# Native clock period of a managed environment (one simulated day)
DAY_LENGTH_TICKS = 24000

# simTime = 1000*hour + 16*minute - 6000
TICKS_PER_HOUR = 1000
TICKS_PER_MINUTE = 16
MIDNIGHT_OFFSET_TICKS = -6000

# ============================================================================
# DEFAULTS
# ============================================================================

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_COUNTRY_CODE = "US"


@dataclass(frozen=True)
class LocationQuery:
    """Zip/postal code plus ISO 3166 two-letter country code."""
    zip_code: str
    country_code: str = DEFAULT_COUNTRY_CODE

    def as_query(self) -> str:
        return f"{self.zip_code},{self.country_code}"


@dataclass(frozen=True)
class SyncConfiguration:
    """Settings consumed by the sync engine. Never mutated after load."""
    timezone_id: str = DEFAULT_TIMEZONE
    api_key: str = ""
    location: LocationQuery = field(default_factory=lambda: LocationQuery(""))
    time_enabled: bool = True
    weather_enabled: bool = True
    debug: bool = False


def _as_bool(raw: Any, default: bool = False) -> bool:
    if isinstance(raw, bool):
        return raw
    raw = str(raw if raw is not None else "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "yes", "on"}


def _as_str(raw: Any, default: str = "") -> str:
    if raw is None:
        return default
    value = str(raw).strip()
    return value or default


def _env_bool(name: str, default: bool = False) -> bool:
    return _as_bool(os.environ.get(name, ""), default)


def _env_str(name: str, default: str = "") -> str:
    return _as_str(os.environ.get(name), default)


def load_sync_config(values: Mapping[str, Any]) -> SyncConfiguration:
    """
    Build a configuration from a mapping using the plugin-style key names
    (Debug, SyncTime, SyncWeather, Timezone, APIKey, ZipCode, CountryCode).
    """
    return SyncConfiguration(
        timezone_id=_as_str(values.get("Timezone"), DEFAULT_TIMEZONE),
        api_key=_as_str(values.get("APIKey")),
        location=LocationQuery(
            zip_code=_as_str(values.get("ZipCode")),
            country_code=_as_str(values.get("CountryCode"), DEFAULT_COUNTRY_CODE).upper(),
        ),
        time_enabled=_as_bool(values.get("SyncTime"), True),
        weather_enabled=_as_bool(values.get("SyncWeather"), True),
        debug=_as_bool(values.get("Debug"), False),
    )


def load_sync_config_from_env() -> SyncConfiguration:
    return SyncConfiguration(
        timezone_id=_env_str("RTW_TIMEZONE", DEFAULT_TIMEZONE),
        api_key=_env_str("RTW_API_KEY"),
        location=LocationQuery(
            zip_code=_env_str("RTW_ZIP_CODE"),
            country_code=_env_str("RTW_COUNTRY_CODE", DEFAULT_COUNTRY_CODE).upper(),
        ),
        time_enabled=_env_bool("RTW_SYNC_TIME", True),
        weather_enabled=_env_bool("RTW_SYNC_WEATHER", True),
        debug=_env_bool("RTW_DEBUG", False),
    )
