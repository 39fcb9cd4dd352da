"""
Sync engine: keeps managed environments' clock and weather in step with
the real world.

Two independent features (time, weather) each go through
UNCONFIGURED -> VALIDATING -> ACTIVE -> DISABLED. Validation runs once at
startup; a failed validation disables the feature for the rest of the
process. Tick-level failures are logged and never change feature state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from collector.conditions import combine
from collector.openweather_client import WeatherClient
from config import TIME_SYNC_INTERVAL_SECONDS, WEATHER_SYNC_INTERVAL_SECONDS, SyncConfiguration
from core.environment import EnvironmentCapability
from core.models import (
    CLEAR,
    FAILURE_MESSAGES,
    UTC,
    FeatureState,
    FetchError,
    ValidationFailure,
    ValidationResult,
    WeatherFlags,
)
from core.time_source import TimeSource

logger = logging.getLogger("sync_engine")


@dataclass
class FeatureStatus:
    name: str
    state: FeatureState = FeatureState.UNCONFIGURED
    reason: Optional[ValidationFailure] = None
    task: Optional[asyncio.Task] = None
    last_tick_utc: Optional[datetime] = None
    tick_count: int = 0
    error_count: int = 0

    @property
    def active(self) -> bool:
        return self.state == FeatureState.ACTIVE

    def mark_tick(self) -> None:
        self.tick_count += 1
        self.last_tick_utc = datetime.now(UTC)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "reason": self.reason.value if self.reason else None,
            "scheduled": self.task is not None and not self.task.done(),
            "last_tick_utc": self.last_tick_utc.isoformat() if self.last_tick_utc else None,
            "tick_count": self.tick_count,
            "error_count": self.error_count,
        }


class SyncEngine:
    def __init__(
        self,
        config: SyncConfiguration,
        environments: EnvironmentCapability,
        weather_client: Optional[WeatherClient] = None,
        time_source: Optional[TimeSource] = None,
        time_interval: float = TIME_SYNC_INTERVAL_SECONDS,
        weather_interval: float = WEATHER_SYNC_INTERVAL_SECONDS,
    ):
        self.config = config
        self.environments = environments
        self.time_source = time_source or TimeSource()
        self.time_interval = time_interval
        self.weather_interval = weather_interval

        self._weather_client = weather_client
        self._owns_weather_client = weather_client is None
        self._running = False
        self._day_cycle = True
        self._weather_cycle = True

        self.time = FeatureStatus("time")
        self.weather = FeatureStatus("weather")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, schedule: bool = True) -> None:
        """
        Validate every configured feature and schedule the active ones.

        Returns only after both validations have finished. With
        ``schedule=False`` features are validated and activated but no
        periodic task is created (manual ticks only).
        """
        if self._running:
            return
        self._running = True
        logger.info("Starting...")

        if self.config.time_enabled:
            await self._setup_time(schedule)
        else:
            self._debug("Time sync not configured")

        if self.config.weather_enabled:
            await self._setup_weather(schedule)
        else:
            self._debug("Weather sync not configured")

        logger.info("Started!")

    async def stop(self) -> None:
        logger.info("Stopping...")
        self._running = False

        for feature in (self.time, self.weather):
            await self._cancel_task(feature)

        self._debug("Re-enabling normal daylight and weather cycles...")
        self._set_native_cycles(day_cycle=True, weather_cycle=True)

        if self._weather_client is not None and self._owns_weather_client:
            await self._weather_client.aclose()
            self._weather_client = None

    def status(self) -> Dict[str, Dict[str, Any]]:
        return {"time": self.time.to_dict(), "weather": self.weather.to_dict()}

    @property
    def time_enabled(self) -> bool:
        return self.time.active

    @property
    def weather_enabled(self) -> bool:
        return self.weather.active

    # ------------------------------------------------------------------
    # Feature setup
    # ------------------------------------------------------------------

    async def _setup_time(self, schedule: bool) -> None:
        self.time.state = FeatureState.VALIDATING
        result = self.time_source.validate(self.config.timezone_id)
        if not result.ok:
            self._disable(self.time, result)
            return

        self._debug(f"Enabling time zone sync (every {self.time_interval:g} seconds)")
        self._debug(f"Syncing time with {result.name}")

        self.time.state = FeatureState.ACTIVE
        self._set_native_cycles(day_cycle=False)
        if schedule:
            self.time.task = asyncio.create_task(
                self._run_periodic(self.time, self.sync_time_once, self.time_interval)
            )

    async def _setup_weather(self, schedule: bool) -> None:
        self.weather.state = FeatureState.VALIDATING
        if self._weather_client is None:
            self._weather_client = WeatherClient()

        result = await self._weather_client.validate(self.config.api_key, self.config.location)
        if not result.ok:
            self._disable(self.weather, result)
            return

        self._debug(f"Enabling weather sync (every {self.weather_interval:g} seconds)")
        if result.name:
            self._debug(f"Syncing weather with {result.name}")

        self.weather.state = FeatureState.ACTIVE
        self._set_native_cycles(weather_cycle=False)
        if schedule:
            self.weather.task = asyncio.create_task(
                self._run_periodic(self.weather, self.sync_weather_once, self.weather_interval)
            )

    def _disable(self, feature: FeatureStatus, result: ValidationResult) -> None:
        feature.state = FeatureState.DISABLED
        feature.reason = result.failure
        logger.error(FAILURE_MESSAGES.get(result.failure, f"{feature.name} validation failed"))
        if result.detail:
            self._debug(result.detail)
        logger.error(f"Disabling {feature.name} sync...")

    def _set_native_cycles(self, day_cycle: Optional[bool] = None, weather_cycle: Optional[bool] = None) -> None:
        """Push cycle state to every eligible environment; None keeps a cycle as it is."""
        if day_cycle is not None:
            self._day_cycle = day_cycle
        if weather_cycle is not None:
            self._weather_cycle = weather_cycle
        for target in self.environments.list_eligible_environments():
            try:
                self.environments.set_cycle_enabled(target, self._day_cycle, self._weather_cycle)
            except Exception as exc:
                logger.error(f"Failed to set native cycles on {getattr(target, 'name', target)}: {exc}")

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    async def sync_time_once(self) -> int:
        value = self.time_source.now(self.config.timezone_id)
        for target in self.environments.list_eligible_environments():
            self.environments.set_clock_value(target, value)
        self.time.mark_tick()
        return value

    async def sync_weather_once(self) -> WeatherFlags:
        self._debug("Syncing weather...")
        if self._weather_client is None:
            self._weather_client = WeatherClient()

        try:
            reading = await self._weather_client.fetch_current(self.config.api_key, self.config.location)
            flags = combine(reading.codes)
        except FetchError as exc:
            # A failed fetch reads as clear weather for this tick
            self.weather.error_count += 1
            logger.error("There was an error when attempting to get weather information")
            self._debug(str(exc))
            flags = CLEAR

        self._debug(f"Setting weather (Rain: {flags.rain}, Thunder: {flags.thunder})...")
        for target in self.environments.list_eligible_environments():
            self.environments.set_weather_flags(target, flags.rain, flags.thunder)
        self.weather.mark_tick()
        return flags

    async def _run_periodic(
        self,
        feature: FeatureStatus,
        tick: Callable[[], Awaitable[Any]],
        interval: float,
    ) -> None:
        loop = asyncio.get_running_loop()
        while self._running and feature.active:
            started = loop.time()
            try:
                await tick()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                feature.error_count += 1
                logger.error(f"{feature.name.capitalize()} sync tick failed: {exc}")
            await asyncio.sleep(max(0.0, interval - (loop.time() - started)))

    async def _cancel_task(self, feature: FeatureStatus) -> None:
        if feature.task is None:
            return
        feature.task.cancel()
        try:
            await feature.task
        except asyncio.CancelledError:
            pass
        feature.task = None

    def _debug(self, message: str) -> None:
        if self.config.debug:
            logger.info(message)
