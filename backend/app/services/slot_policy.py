"""Operating-hours policy.

Days follow the 0=Sunday..6=Saturday convention. Each day maps to a
half-open ``[start, end)`` range of hours; a booking at ``end`` is closed.
Dates and times are evaluated as the wall-clock values the guest submitted.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime

from backend.app.core.errors import Closed, InvalidInput

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


@dataclass(frozen=True)
class OpeningHours:
    start: int
    end: int

    def contains(self, hour: int) -> bool:
        return self.start <= hour < self.end


OPERATING_HOURS: dict[int, OpeningHours] = {
    0: OpeningHours(12, 22),  # Sunday
    1: OpeningHours(11, 23),
    2: OpeningHours(11, 23),
    3: OpeningHours(11, 23),
    4: OpeningHours(11, 23),
    5: OpeningHours(11, 24),  # Friday until midnight
    6: OpeningHours(12, 24),
}


def day_of_week(day: date) -> int:
    # date.weekday() is Monday=0
    return (day.weekday() + 1) % 7


def is_open(dow: int, hour: int, hours: dict[int, OpeningHours] = OPERATING_HOURS) -> bool:
    window = hours.get(dow)
    return window is not None and window.contains(hour)


class DaySlots:
    """Restartable iterable over the on-the-hour slots of one day."""

    def __init__(self, window: OpeningHours | None) -> None:
        self._window = window

    def __iter__(self) -> Iterator[str]:
        if self._window is None:
            return
        for hour in range(self._window.start, self._window.end):
            yield f"{hour:02d}:00"


def enumerate_slots(dow: int, hours: dict[int, OpeningHours] = OPERATING_HOURS) -> DaySlots:
    return DaySlots(hours.get(dow))


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError) as exc:
        raise InvalidInput("Invalid date format.") from exc


def parse_time(value: str) -> tuple[int, int]:
    try:
        parsed = datetime.strptime(value, TIME_FORMAT)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("Invalid time format.") from exc
    return parsed.hour, parsed.minute


def ensure_open(day: date, time_value: str, hours: dict[int, OpeningHours] = OPERATING_HOURS) -> None:
    """Raise Closed unless the restaurant is open at ``time_value`` on ``day``."""
    hour, _ = parse_time(time_value)
    if not is_open(day_of_week(day), hour, hours):
        raise Closed()
