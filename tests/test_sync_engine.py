import asyncio
from datetime import datetime
import logging
from pathlib import Path
import sys
from zoneinfo import ZoneInfo

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from config import LocationQuery, SyncConfiguration
from core.environment import EnvironmentKind, EnvironmentTarget, InMemoryEnvironments
from core.models import (
    FeatureState,
    FetchError,
    ValidationFailure,
    ValidationResult,
    WeatherFlags,
    WeatherReading,
)
from core.sync_engine import SyncEngine
from core.time_source import TimeSource

UTC = ZoneInfo("UTC")


class _RecordingEnvironments(InMemoryEnvironments):
    def __init__(self, targets):
        super().__init__(targets)
        self.calls = []

    def set_clock_value(self, target, value):
        self.calls.append(("clock", target.name, value))
        super().set_clock_value(target, value)

    def set_weather_flags(self, target, rain, thunder):
        self.calls.append(("weather", target.name, rain, thunder))
        super().set_weather_flags(target, rain, thunder)

    def set_cycle_enabled(self, target, day_cycle, weather_cycle):
        self.calls.append(("cycle", target.name, day_cycle, weather_cycle))
        super().set_cycle_enabled(target, day_cycle, weather_cycle)

    def of(self, kind):
        return [c for c in self.calls if c[0] == kind]


class _StubWeatherClient:
    def __init__(self, validation=None, readings=None):
        self.validation = validation or ValidationResult.success(latitude=40.7, longitude=-74.0, name="New York")
        self.readings = list(readings or [])
        self.validate_calls = 0
        self.fetch_calls = 0
        self.closed = False

    async def validate(self, api_key, location):
        self.validate_calls += 1
        return self.validation

    async def fetch_current(self, api_key, location):
        self.fetch_calls += 1
        item = self.readings.pop(0) if self.readings else WeatherReading([800])
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self):
        self.closed = True


def _environments():
    return _RecordingEnvironments(
        [
            EnvironmentTarget("world"),
            EnvironmentTarget("world_nether", kind=EnvironmentKind.NETHER),
            EnvironmentTarget("creative"),
        ]
    )


def _config(**overrides):
    values = dict(
        timezone_id="UTC",
        api_key="key",
        location=LocationQuery("10001", "US"),
        time_enabled=True,
        weather_enabled=True,
        debug=False,
    )
    values.update(overrides)
    return SyncConfiguration(**values)


def _fixed_time_source(hour=12, minute=0):
    return TimeSource(clock=lambda: datetime(2026, 6, 1, hour, minute, tzinfo=UTC))


def test_weather_validation_failure_disables_without_scheduling():
    envs = _environments()
    client = _StubWeatherClient(validation=ValidationResult.failed(ValidationFailure.INVALID_API_KEY, "HTTP 401"))
    engine = SyncEngine(_config(time_enabled=False), envs, weather_client=client)

    async def run():
        await engine.start()
        await asyncio.sleep(0.05)
        status = engine.status()
        await engine.stop()
        return status

    status = asyncio.run(run())

    assert engine.weather.state == FeatureState.DISABLED
    assert engine.weather.reason == ValidationFailure.INVALID_API_KEY
    assert engine.weather.task is None
    assert status["weather"]["scheduled"] is False
    assert client.fetch_calls == 0
    assert envs.of("weather") == []
    assert not engine.weather_enabled


def test_invalid_timezone_disables_time_but_weather_still_starts(caplog):
    envs = _environments()
    client = _StubWeatherClient()
    engine = SyncEngine(_config(timezone_id="Nowhere/Special"), envs, weather_client=client)

    async def run():
        await engine.start(schedule=False)
        await engine.stop()

    with caplog.at_level(logging.INFO, logger="sync_engine"):
        asyncio.run(run())

    assert engine.time.state == FeatureState.DISABLED
    assert engine.time.reason == ValidationFailure.INVALID_TIMEZONE
    assert engine.weather.state == FeatureState.ACTIVE
    assert any("Disabling time sync" in r.getMessage() and r.levelno == logging.ERROR for r in caplog.records)
    assert "Started!" in caplog.text


def test_unconfigured_features_never_validate():
    envs = _environments()
    client = _StubWeatherClient()
    engine = SyncEngine(_config(time_enabled=False, weather_enabled=False), envs, weather_client=client)

    async def run():
        await engine.start()
        await engine.stop()

    asyncio.run(run())

    assert engine.time.state == FeatureState.UNCONFIGURED
    assert engine.weather.state == FeatureState.UNCONFIGURED
    assert client.validate_calls == 0
    assert envs.of("clock") == []


def test_fetch_failure_keeps_feature_active_and_applies_clear(caplog):
    envs = _environments()
    client = _StubWeatherClient(readings=[WeatherReading([211]), FetchError("HTTP 502", status_code=502)])
    engine = SyncEngine(_config(time_enabled=False), envs, weather_client=client)

    async def run():
        await engine.start(schedule=False)
        first = await engine.sync_weather_once()
        second = await engine.sync_weather_once()
        await engine.stop()
        return first, second

    with caplog.at_level(logging.ERROR, logger="sync_engine"):
        first, second = asyncio.run(run())

    assert first == WeatherFlags(rain=True, thunder=True)
    assert second == WeatherFlags(rain=False, thunder=False)
    assert engine.weather.state == FeatureState.ACTIVE
    assert engine.weather.error_count == 1
    assert envs.of("weather")[-2:] == [
        ("weather", "world", False, False),
        ("weather", "creative", False, False),
    ]
    assert any(
        r.levelno == logging.ERROR and "error when attempting to get weather" in r.getMessage()
        for r in caplog.records
    )


def test_multiple_conditions_are_or_combined():
    envs = _environments()
    client = _StubWeatherClient(readings=[WeatherReading([211, 800])])
    engine = SyncEngine(_config(time_enabled=False), envs, weather_client=client)

    async def run():
        await engine.start(schedule=False)
        await engine.sync_weather_once()
        await engine.stop()

    asyncio.run(run())

    world = envs.targets[0]
    assert (world.rain, world.thunder) == (True, True)
    assert envs.targets[1].rain is False


def test_time_tick_applies_clock_to_eligible_environments_only():
    envs = _environments()
    engine = SyncEngine(
        _config(weather_enabled=False),
        envs,
        weather_client=_StubWeatherClient(),
        time_source=_fixed_time_source(hour=18),
    )

    async def run():
        await engine.start(schedule=False)
        value = await engine.sync_time_once()
        await engine.stop()
        return value

    value = asyncio.run(run())

    assert value == 12000
    assert envs.of("clock") == [("clock", "world", 12000), ("clock", "creative", 12000)]
    assert envs.targets[1].clock_value == 0


def test_each_native_cycle_is_turned_off_once():
    envs = _environments()
    engine = SyncEngine(_config(), envs, weather_client=_StubWeatherClient(), time_source=_fixed_time_source())

    async def run():
        await engine.start(schedule=False)
        cycles = list(envs.of("cycle"))
        await engine.stop()
        return cycles

    cycles = asyncio.run(run())

    assert cycles == [
        ("cycle", "world", False, True),
        ("cycle", "creative", False, True),
        ("cycle", "world", False, False),
        ("cycle", "creative", False, False),
    ]
    for name in ("world", "creative"):
        states = [(True, True)] + [c[2:] for c in cycles if c[1] == name]
        day_changes = sum(1 for a, b in zip(states, states[1:]) if a[0] != b[0])
        weather_changes = sum(1 for a, b in zip(states, states[1:]) if a[1] != b[1])
        assert (day_changes, weather_changes) == (1, 1)


def test_weather_activation_keeps_day_cycle_when_time_is_off():
    envs = _environments()
    engine = SyncEngine(_config(time_enabled=False), envs, weather_client=_StubWeatherClient())

    async def run():
        await engine.start(schedule=False)
        cycles = list(envs.of("cycle"))
        await engine.stop()
        return cycles

    assert asyncio.run(run()) == [
        ("cycle", "world", True, False),
        ("cycle", "creative", True, False),
    ]


def test_failing_cycle_update_does_not_abort_startup(caplog):
    class _LockedEnvironments(_RecordingEnvironments):
        def set_cycle_enabled(self, target, day_cycle, weather_cycle):
            if target.name == "world":
                raise RuntimeError("gamerule locked")
            super().set_cycle_enabled(target, day_cycle, weather_cycle)

    envs = _LockedEnvironments([EnvironmentTarget("world"), EnvironmentTarget("creative")])
    engine = SyncEngine(_config(), envs, weather_client=_StubWeatherClient(), time_source=_fixed_time_source())

    async def run():
        await engine.start(schedule=False)
        states = (engine.time.state, engine.weather.state)
        await engine.stop()
        return states

    with caplog.at_level(logging.INFO, logger="sync_engine"):
        states = asyncio.run(run())

    assert states == (FeatureState.ACTIVE, FeatureState.ACTIVE)
    assert "Started!" in caplog.text
    assert any(
        r.levelno == logging.ERROR and "gamerule locked" in r.getMessage() for r in caplog.records
    )
    assert envs.of("cycle")[-1] == ("cycle", "creative", True, True)


def test_stop_restores_cycles_exactly_once_per_eligible_environment():
    for time_enabled, weather_enabled in [(True, True), (True, False), (False, True), (False, False)]:
        envs = _environments()
        engine = SyncEngine(
            _config(time_enabled=time_enabled, weather_enabled=weather_enabled),
            envs,
            weather_client=_StubWeatherClient(),
            time_source=_fixed_time_source(),
        )

        async def run():
            await engine.start()
            await asyncio.sleep(0.01)
            await engine.stop()

        asyncio.run(run())

        restored = [c for c in envs.of("cycle") if c[2:] == (True, True)]
        assert sorted(restored) == [("cycle", "creative", True, True), ("cycle", "world", True, True)]
        assert all(t.day_cycle and t.weather_cycle for t in envs.targets)


def test_scheduled_tasks_tick_until_stop():
    envs = _environments()
    client = _StubWeatherClient(readings=[WeatherReading([501])] * 100)
    engine = SyncEngine(
        _config(),
        envs,
        weather_client=client,
        time_source=_fixed_time_source(hour=6),
        time_interval=0.01,
        weather_interval=0.01,
    )

    async def run():
        await engine.start()
        await asyncio.sleep(0.1)
        await engine.stop()
        ticks = (engine.time.tick_count, engine.weather.tick_count)
        await asyncio.sleep(0.05)
        return ticks

    ticks = asyncio.run(run())

    assert ticks[0] >= 2
    assert ticks[1] >= 2
    assert (engine.time.tick_count, engine.weather.tick_count) == ticks
    assert engine.time.task is None and engine.weather.task is None
    assert envs.targets[0].clock_value == 0
    assert envs.targets[0].rain is True


def test_tick_exception_does_not_kill_the_task():
    class _FlakyEnvironments(_RecordingEnvironments):
        fail_next = True

        def set_clock_value(self, target, value):
            if self.fail_next:
                self.fail_next = False
                raise RuntimeError("world unloaded")
            super().set_clock_value(target, value)

    envs = _FlakyEnvironments([EnvironmentTarget("world")])
    engine = SyncEngine(
        _config(weather_enabled=False),
        envs,
        weather_client=_StubWeatherClient(),
        time_source=_fixed_time_source(),
        time_interval=0.01,
    )

    async def run():
        await engine.start()
        await asyncio.sleep(0.08)
        await engine.stop()

    asyncio.run(run())

    assert engine.time.state == FeatureState.ACTIVE
    assert engine.time.error_count == 1
    assert len(envs.of("clock")) >= 1


def test_debug_stream_only_when_enabled(caplog):
    client = _StubWeatherClient(validation=ValidationResult.failed(ValidationFailure.SERVICE_UNAVAILABLE, "ConnectError: boom"))

    async def run(debug):
        engine = SyncEngine(_config(time_enabled=False, debug=debug), _environments(), weather_client=client)
        await engine.start()
        await engine.stop()

    with caplog.at_level(logging.INFO, logger="sync_engine"):
        asyncio.run(run(False))
    assert "ConnectError: boom" not in caplog.text
    assert "server error" in caplog.text

    caplog.clear()
    with caplog.at_level(logging.INFO, logger="sync_engine"):
        asyncio.run(run(True))
    assert "ConnectError: boom" in caplog.text


def test_injected_client_is_not_closed_by_engine():
    client = _StubWeatherClient()
    engine = SyncEngine(_config(time_enabled=False), _environments(), weather_client=client)

    async def run():
        await engine.start(schedule=False)
        await engine.stop()

    asyncio.run(run())

    assert client.closed is False
