"""
Real-world clock to simulated time-of-day.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import MIDNIGHT_OFFSET_TICKS, TICKS_PER_HOUR, TICKS_PER_MINUTE
from core.models import UTC, ValidationFailure, ValidationResult

logger = logging.getLogger("time_source")


def sim_time(hour: int, minute: int) -> int:
    """Affine map of a wall-clock hour/minute onto the simulated clock."""
    return TICKS_PER_HOUR * hour + TICKS_PER_MINUTE * minute + MIDNIGHT_OFFSET_TICKS


class TimeSource:
    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        # clock must return an aware datetime
        self._clock = clock or (lambda: datetime.now(UTC))

    def validate(self, timezone_id: str) -> ValidationResult:
        try:
            zone = ZoneInfo(str(timezone_id or "").strip())
        except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
            return ValidationResult.failed(ValidationFailure.INVALID_TIMEZONE, str(exc) or repr(exc))
        logger.debug(f"Resolved timezone {zone}")
        return ValidationResult.success(name=str(zone))

    def now(self, timezone_id: str) -> int:
        local = self._clock().astimezone(ZoneInfo(timezone_id))
        return sim_time(local.hour, local.minute)
