"""
Real-Time Weather Sync - OpenWeatherMap Client
Validates the API key/location once, then fetches current conditions.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from config import HTTP_TIMEOUT_SECONDS, OWM_CURRENT_WEATHER_URL, OWM_GEO_ZIP_URL, LocationQuery
from core.models import FetchError, ValidationFailure, ValidationResult, WeatherReading

logger = logging.getLogger("openweather_client")


def classify_status(status_code: int) -> Optional[ValidationFailure]:
    """Map a validation response status onto a failure (None means valid)."""
    if status_code >= 500:
        return ValidationFailure.SERVICE_UNAVAILABLE
    if status_code == 401:
        return ValidationFailure.INVALID_API_KEY
    if status_code == 404:
        return ValidationFailure.INVALID_LOCATION
    if status_code >= 400:
        return ValidationFailure.CONFIGURATION_ERROR
    return None


def _float_or_none(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_condition_codes(payload: Any) -> List[int]:
    """
    Extract every ``weather[].id`` from a current-conditions body.

    Raises:
        FetchError: when the body does not carry a usable condition list
    """
    if not isinstance(payload, dict):
        raise FetchError("Malformed weather response: body is not an object")
    conditions = payload.get("weather")
    if not isinstance(conditions, list) or not conditions:
        raise FetchError("Malformed weather response: missing condition list")

    codes = []
    for entry in conditions:
        raw_id = entry.get("id") if isinstance(entry, dict) else None
        if isinstance(raw_id, bool):
            raw_id = None
        try:
            codes.append(int(str(raw_id)))
        except (TypeError, ValueError):
            raise FetchError(f"Malformed weather response: bad condition id {raw_id!r}")
    return codes


class WeatherClient:
    """
    Thin async wrapper over the two OpenWeatherMap endpoints we need.

    Coordinates resolved during validation are remembered and used for the
    current-conditions lookups; zip/country is the fallback.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._coordinates: Optional[tuple[float, float]] = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def validate(self, api_key: str, location: LocationQuery) -> ValidationResult:
        params = {"zip": location.as_query(), "appid": api_key}
        try:
            response = await self._client.get(OWM_GEO_ZIP_URL, params=params)
        except httpx.HTTPError as exc:
            return ValidationResult.failed(ValidationFailure.SERVICE_UNAVAILABLE, f"{type(exc).__name__}: {exc}")

        failure = classify_status(response.status_code)
        if failure is not None:
            return ValidationResult.failed(failure, f"HTTP {response.status_code} from geocoding lookup")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        result = ValidationResult.success(
            latitude=_float_or_none(body.get("lat")),
            longitude=_float_or_none(body.get("lon")),
            name=body.get("name"),
        )
        if result.has_coordinates:
            self._coordinates = (result.latitude, result.longitude)
        logger.debug(f"Location {location.as_query()} resolved to {result.name} ({result.latitude}, {result.longitude})")
        return result

    async def fetch_current(self, api_key: str, location: LocationQuery) -> WeatherReading:
        if self._coordinates is not None:
            lat, lon = self._coordinates
            params = {"lat": lat, "lon": lon, "appid": api_key}
        else:
            params = {"zip": location.as_query(), "appid": api_key}

        try:
            response = await self._client.get(OWM_CURRENT_WEATHER_URL, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"Weather request failed with HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Weather request failed: {type(exc).__name__}: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError("Malformed weather response: body is not JSON") from exc

        return WeatherReading(codes=parse_condition_codes(payload))
