"""
Calendar-date iteration for availability searches.

Dates are advanced on their (year, month, day) components, never by adding
24 hours to an instant, so daylight-saving changes cannot shift a day.
"""

from __future__ import annotations

from typing import Iterable, Iterator

import pendulum
from pendulum import Date

from .exceptions import InvalidConfigError, InvalidRangeError


def weekday_number(day: Date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


def next_date(day: Date) -> Date:
    """Return the following calendar date."""
    return day.add(days=1)


class DateRange:
    """
    Inclusive, restartable sequence of calendar dates.

    Each call to ``iter()`` starts again from ``start``.
    """

    def __init__(self, start: Date, end: Date, excluded_weekdays: Iterable[int] = ()):
        if start > end:
            raise InvalidRangeError(f"Start date {start} is after end date {end}")

        excluded = frozenset(excluded_weekdays)
        invalid_days = sorted(day for day in excluded if day not in range(7))
        if invalid_days:
            raise InvalidConfigError(f"Excluded weekdays must be between 0 and 6, got {invalid_days}")

        self.start = pendulum.date(start.year, start.month, start.day)
        self.end = pendulum.date(end.year, end.month, end.day)
        self.excluded_weekdays = excluded

    def is_excluded(self, day: Date) -> bool:
        return weekday_number(day) in self.excluded_weekdays

    def all_dates(self) -> Iterator[Date]:
        """Every date in the range, excluded weekdays included."""
        current = self.start
        while current <= self.end:
            yield current
            current = next_date(current)

    def __iter__(self) -> Iterator[Date]:
        return (day for day in self.all_dates() if not self.is_excluded(day))

    def __repr__(self) -> str:
        return f"DateRange({self.start}, {self.end}, excluded={sorted(self.excluded_weekdays)})"


def iter_dates(start: Date, end: Date, excluded_weekdays: Iterable[int] = ()) -> DateRange:
    """
    Dates from start to end inclusive, skipping excluded weekdays.

    Raises:
        InvalidRangeError: If start is after end
    """
    return DateRange(start, end, excluded_weekdays)
