"""Clock and calendar helpers for compliance cycle windows."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol

SECONDS_PER_DAY = 86_400


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("Cycle window values must include timezone information")
    return value.astimezone(UTC)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def add_years(moment: datetime, years: int) -> datetime:
    """Shift by calendar years; 29 February falls back to 28 February."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def ceil_days(delta: timedelta) -> int:
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


@dataclass(frozen=True)
class CycleWindow:
    """Inclusive ``[start, end]`` range over activity start timestamps."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        start = ensure_aware(self.start)
        end = ensure_aware(self.end)
        if start > end:
            raise ValueError("Cycle window start must be before end")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def anchored(cls, anchor: datetime, *, years: int) -> CycleWindow:
        return cls(start=anchor, end=add_years(ensure_aware(anchor), years))

    def contains(self, moment: datetime | None) -> bool:
        if moment is None:
            return False
        return self.start <= ensure_aware(moment) <= self.end

    def days_until_end(self, *, clock: Clock = utcnow) -> int:
        """Whole days left, rounded up; negative once the window has closed."""
        return ceil_days(self.end - clock())


__all__ = [
    "Clock",
    "CycleWindow",
    "add_years",
    "ceil_days",
    "ensure_aware",
    "start_of_day",
    "utcnow",
]
