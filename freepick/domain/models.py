"""
Domain models for calendar events, slot settings and computed slots.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

import pendulum
from pendulum import Date, DateTime, FixedTimezone, Timezone

from .exceptions import InvalidConfigError, InvalidRangeError

DEFAULT_TIMEZONE = "Asia/Tokyo"

BIRTHDAY_TOKENS = ("誕生日", "birthday")

_OFFSET_PATTERN = re.compile(r"^(?:UTC|GMT)?([+-])(\d{1,2})(?::?(\d{2}))?$", re.IGNORECASE)

EventTime = Union[DateTime, Date]
TimezoneLike = Union[str, Timezone, FixedTimezone]


def resolve_timezone(value: TimezoneLike) -> Timezone | FixedTimezone:
    """
    Resolve an IANA zone name or a fixed offset such as ``+09:00``.

    Raises:
        InvalidConfigError: If the value names no known zone
    """
    if isinstance(value, (Timezone, FixedTimezone)):
        return value

    name = str(value).strip()
    if name.upper() in ("UTC", "Z", "GMT"):
        return pendulum.UTC

    match = _OFFSET_PATTERN.match(name)
    if match:
        sign, hours, minutes = match.groups()
        if int(minutes or 0) > 59:
            raise InvalidConfigError(f"Timezone offset minutes out of range: {value!r}")
        offset = int(hours) * 3600 + int(minutes or 0) * 60
        if offset > 18 * 3600:
            raise InvalidConfigError(f"Timezone offset out of range: {value!r}")
        return pendulum.FixedTimezone(-offset if sign == "-" else offset)

    try:
        return pendulum.timezone(name)
    except (ValueError, KeyError) as exc:
        raise InvalidConfigError(f"Unknown timezone: {value!r}") from exc


def midnight(day: Date, tz: Timezone | FixedTimezone) -> DateTime:
    """Return 00:00 of a calendar date in the given zone."""
    return pendulum.datetime(day.year, day.month, day.day, tz=tz)


@dataclass(frozen=True)
class CalendarEvent:
    """
    A single (already expanded) calendar entry.

    Timed events carry ``DateTime`` bounds. All-day events carry ``Date``
    bounds where the end date is exclusive, as delivered by Google Calendar.
    """
    summary: str
    start: EventTime
    end: EventTime
    calendar_id: str = "primary"

    def __post_init__(self):
        if isinstance(self.start, DateTime) != isinstance(self.end, DateTime):
            raise ValueError(
                f"Event '{self.summary}' mixes a timed and an all-day boundary"
            )
        if self.start > self.end:
            raise ValueError(
                f"Event '{self.summary}' starts at {self.start} after it ends at {self.end}"
            )

    @property
    def is_all_day(self) -> bool:
        return not isinstance(self.start, DateTime)

    @property
    def is_birthday(self) -> bool:
        """All-day entries such as contact birthdays never block time."""
        if not self.is_all_day:
            return False
        summary = (self.summary or "").lower()
        return any(token in summary for token in BIRTHDAY_TOKENS)

    def span(self, tz: Timezone | FixedTimezone) -> Tuple[DateTime, DateTime]:
        """
        Return the busy interval as instants in ``tz``.

        An all-day event covers its whole calendar date(s) in the scheduling
        zone. A degenerate all-day event (end == start) covers its start date.
        """
        if not self.is_all_day:
            return self.start.in_timezone(tz), self.end.in_timezone(tz)

        end_date = self.end if self.end > self.start else self.start.add(days=1)
        return midnight(self.start, tz), midnight(end_date, tz)

    @classmethod
    def from_google(cls, item: Dict[str, Any], calendar_id: str = "primary") -> "CalendarEvent":
        """
        Build an event from a Google Calendar ``events.list`` item.

        Raises:
            KeyError: If start or end is missing
            ValueError: If a boundary cannot be parsed
        """
        start_info = item["start"]
        end_info = item["end"]

        if "dateTime" in start_info:
            start = _parse_instant(start_info["dateTime"])
            end = _parse_instant(end_info["dateTime"])
        else:
            start = _parse_day(start_info["date"])
            end = _parse_day(end_info["date"])

        return cls(
            summary=item.get("summary", ""),
            start=start,
            end=end,
            calendar_id=calendar_id,
        )


def _parse_instant(value: str) -> DateTime:
    parsed = pendulum.parse(value)
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {value}")
    return parsed


def _parse_day(value: str) -> Date:
    parsed = pendulum.parse(value, exact=True)
    if isinstance(parsed, DateTime) or not isinstance(parsed, Date):
        raise ValueError(f"Could not parse date: {value}")
    return parsed


@dataclass(frozen=True)
class WorkingHours:
    """
    Daily window in which slots may be offered.

    An empty or inverted window is allowed and simply yields no slots.
    """
    start_hour: int = 9
    end_hour: int = 18

    @property
    def is_empty(self) -> bool:
        return self.end_hour <= self.start_hour

    def window_for(self, day: Date, tz: Timezone | FixedTimezone) -> Tuple[DateTime, DateTime]:
        """Return the (day_start, day_end) instants on a calendar date."""
        day_start = pendulum.datetime(day.year, day.month, day.day, self.start_hour, tz=tz)
        day_end = pendulum.datetime(day.year, day.month, day.day, self.end_hour, tz=tz)
        return day_start, day_end


@dataclass(frozen=True)
class SlotConfig:
    """
    Settings for one availability request.

    Weekdays are numbered 0=Sunday .. 6=Saturday.
    """
    start_date: Date
    end_date: Date
    working_hours: WorkingHours = field(default_factory=WorkingHours)
    slot_duration_minutes: int = 30
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0
    excluded_weekdays: FrozenSet[int] = frozenset()
    merge_consecutive: bool = False
    ignore_all_day_events: bool = False
    calendar_ids: Tuple[str, ...] = ("primary",)
    timezone: str = DEFAULT_TIMEZONE

    @property
    def tz(self) -> Timezone | FixedTimezone:
        return resolve_timezone(self.timezone)

    def validate(self) -> None:
        """
        Reject settings that can never produce a meaningful result.

        Raises:
            InvalidRangeError: If start_date is after end_date
            InvalidConfigError: If any other value is out of range
        """
        if self.start_date > self.end_date:
            raise InvalidRangeError(
                f"Start date {self.start_date} is after end date {self.end_date}"
            )

        if self.slot_duration_minutes < 1:
            raise InvalidConfigError(
                f"slot_duration_minutes must be at least 1, got {self.slot_duration_minutes}"
            )

        for name in ("start_hour", "end_hour"):
            hour = getattr(self.working_hours, name)
            if not 0 <= hour <= 23:
                raise InvalidConfigError(f"{name} must be between 0 and 23, got {hour}")

        for name in ("buffer_before_minutes", "buffer_after_minutes"):
            if getattr(self, name) < 0:
                raise InvalidConfigError(f"{name} must not be negative")

        invalid_days = sorted(day for day in self.excluded_weekdays if day not in range(7))
        if invalid_days:
            raise InvalidConfigError(f"Excluded weekdays must be between 0 and 6, got {invalid_days}")

        if not self.calendar_ids:
            raise InvalidConfigError("At least one calendar must be selected")

        # Raises InvalidConfigError for unknown zones
        resolve_timezone(self.timezone)


@dataclass(frozen=True)
class Slot:
    """
    A free interval offered as a scheduling candidate.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @property
    def date(self) -> Date:
        """Calendar date the slot belongs to (taken from its start)."""
        return self.start.date()

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass
class DayTrace:
    """Diagnostics for one processed calendar date."""
    date: Date
    events_considered: int = 0
    birthdays_excluded: int = 0
    all_day_excluded: int = 0
    gaps: int = 0
    slots: int = 0


@dataclass
class AvailabilityTrace:
    """Optional side-channel describing how a result was computed."""
    days: List[DayTrace] = field(default_factory=list)
    skipped_dates: List[Date] = field(default_factory=list)

    @property
    def processed_dates(self) -> List[Date]:
        return [day.date for day in self.days]


@dataclass
class AvailabilityResult:
    """Slots plus their rendered text."""
    slots: List[Slot]
    formatted_text: str
    trace: Optional[AvailabilityTrace] = None

    @property
    def total_slots(self) -> int:
        return len(self.slots)

    def slots_by_date(self) -> Dict[Date, int]:
        counts: Dict[Date, int] = {}
        for slot in self.slots:
            counts[slot.date] = counts.get(slot.date, 0) + 1
        return counts
