"""
Sync data models.

These types are shared by the weather client, the time source and the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from zoneinfo import ZoneInfo

UTC = ZoneInfo("UTC")


class FeatureState(str, Enum):
    UNCONFIGURED = "unconfigured"
    VALIDATING = "validating"
    ACTIVE = "active"
    DISABLED = "disabled"


class ValidationFailure(str, Enum):
    INVALID_TIMEZONE = "invalid_timezone"
    INVALID_API_KEY = "invalid_api_key"
    INVALID_LOCATION = "invalid_location"
    CONFIGURATION_ERROR = "configuration_error"
    SERVICE_UNAVAILABLE = "service_unavailable"


# Operator-facing explanation per failure
FAILURE_MESSAGES = {
    ValidationFailure.INVALID_TIMEZONE: "Error loading timezone. Check that the values in your configuration file are valid.",
    ValidationFailure.INVALID_API_KEY: "Error when getting weather information: API key incorrect",
    ValidationFailure.INVALID_LOCATION: "Error when getting weather information: Zip/Country code incorrect",
    ValidationFailure.CONFIGURATION_ERROR: "Error when getting weather information: unknown error. Please check that the values set in the config file are correct",
    ValidationFailure.SERVICE_UNAVAILABLE: "There was a server error when requesting weather information. Please try again later",
}


@dataclass
class ValidationResult:
    """Outcome of a one-shot startup check."""
    ok: bool
    failure: Optional[ValidationFailure] = None
    detail: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    name: Optional[str] = None

    @classmethod
    def success(cls, **kwargs) -> "ValidationResult":
        return cls(ok=True, **kwargs)

    @classmethod
    def failed(cls, failure: ValidationFailure, detail: str = "") -> "ValidationResult":
        return cls(ok=False, failure=failure, detail=detail)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass
class WeatherReading:
    """Raw condition codes from one current-conditions response."""
    codes: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class WeatherFlags:
    rain: bool = False
    thunder: bool = False

    def __or__(self, other: "WeatherFlags") -> "WeatherFlags":
        return WeatherFlags(rain=self.rain or other.rain, thunder=self.thunder or other.thunder)


CLEAR = WeatherFlags()


class FetchError(Exception):
    """Recoverable failure of a current-conditions request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
