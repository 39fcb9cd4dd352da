"""
Managed environments the engine applies time and weather to.

The engine only talks to ``EnvironmentCapability``. ``InMemoryEnvironments``
is the stand-alone implementation used by the CLI and the tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Protocol

from config import DAY_LENGTH_TICKS

logger = logging.getLogger("environment")


class EnvironmentKind(str, Enum):
    NORMAL = "normal"
    NETHER = "nether"
    THE_END = "the_end"


@dataclass
class EnvironmentTarget:
    name: str
    kind: EnvironmentKind = EnvironmentKind.NORMAL
    clock_value: int = 0
    rain: bool = False
    thunder: bool = False
    day_cycle: bool = True
    weather_cycle: bool = True

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "clock_value": self.clock_value,
            "rain": self.rain,
            "thunder": self.thunder,
            "day_cycle": self.day_cycle,
            "weather_cycle": self.weather_cycle,
        }


class EnvironmentCapability(Protocol):
    def list_eligible_environments(self) -> List[EnvironmentTarget]: ...

    def set_clock_value(self, target: EnvironmentTarget, value: int) -> None: ...

    def set_weather_flags(self, target: EnvironmentTarget, rain: bool, thunder: bool) -> None: ...

    def set_cycle_enabled(self, target: EnvironmentTarget, day_cycle: bool, weather_cycle: bool) -> None: ...


class InMemoryEnvironments:
    """Append-only collection of worlds; only NORMAL ones are eligible for sync."""

    def __init__(self, targets: Iterable[EnvironmentTarget] = ()):
        self._targets: List[EnvironmentTarget] = list(targets)

    def add(self, target: EnvironmentTarget) -> EnvironmentTarget:
        self._targets.append(target)
        return target

    @property
    def targets(self) -> List[EnvironmentTarget]:
        return list(self._targets)

    def list_eligible_environments(self) -> List[EnvironmentTarget]:
        return [t for t in self._targets if t.kind == EnvironmentKind.NORMAL]

    def set_clock_value(self, target: EnvironmentTarget, value: int) -> None:
        target.clock_value = value % DAY_LENGTH_TICKS
        logger.debug(f"{target.name}: clock -> {target.clock_value}")

    def set_weather_flags(self, target: EnvironmentTarget, rain: bool, thunder: bool) -> None:
        target.rain = rain
        target.thunder = thunder
        logger.debug(f"{target.name}: rain={rain} thunder={thunder}")

    def set_cycle_enabled(self, target: EnvironmentTarget, day_cycle: bool, weather_cycle: bool) -> None:
        target.day_cycle = day_cycle
        target.weather_cycle = weather_cycle
        logger.debug(f"{target.name}: day_cycle={day_cycle} weather_cycle={weather_cycle}")
