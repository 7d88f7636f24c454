"""
Core business logic for calculating available time slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from pendulum import Date, DateTime

from .day_walker import DateRange
from .formatter import format_slots
from .models import (
    AvailabilityResult,
    AvailabilityTrace,
    CalendarEvent,
    DayTrace,
    Slot,
    SlotConfig,
)

logger = logging.getLogger(__name__)

Interval = Tuple[DateTime, DateTime]


def slice_gap(start: DateTime, end: DateTime, duration_minutes: int) -> List[Slot]:
    """
    Cut a gap into back-to-back slots of exactly ``duration_minutes``.

    A remainder shorter than one slot is dropped.
    """
    slots: List[Slot] = []
    slot_start = start
    slot_end = start.add(minutes=duration_minutes)

    while slot_end <= end:
        slots.append(Slot(start=slot_start, end=slot_end))
        slot_start = slot_end
        slot_end = slot_start.add(minutes=duration_minutes)

    return slots


def merge_consecutive_slots(slots: Sequence[Slot]) -> List[Slot]:
    """
    Merge slots where one ends exactly when the next begins.

    Example: [09:00-09:30, 09:30-10:00, 11:00-11:30] -> [09:00-10:00, 11:00-11:30]

    A day boundary always ends a run.
    """
    merged: List[Slot] = []

    for slot in slots:
        if merged:
            last = merged[-1]
            if last.end == slot.start and last.date == slot.date:
                merged[-1] = Slot(start=last.start, end=slot.end)
                continue
        merged.append(slot)

    return merged


class SlotCalculator:
    """
    Calculates free slots from calendar events for one SlotConfig.

    Algorithm, per non-excluded date:
    1. Build the working-hours window in the scheduling timezone
    2. Keep events whose buffered interval overlaps the window
    3. Drop birthdays, and all-day events when asked to
    4. Sweep the events in start order, emitting the gaps between them
    5. Slice each gap into fixed slots, or keep it whole when merging
    """

    def __init__(self, config: SlotConfig):
        config.validate()
        self.config = config
        self.tz = config.tz

    def find_available_slots(
        self,
        events: Sequence[CalendarEvent],
        trace: Optional[AvailabilityTrace] = None,
    ) -> List[Slot]:
        """
        Find all free slots across the configured date range.

        Args:
            events: Events from every selected calendar, in any order
            trace: Optional trace object that receives per-day diagnostics

        Returns:
            Slots in ascending order of start
        """
        dates = DateRange(
            self.config.start_date,
            self.config.end_date,
            self.config.excluded_weekdays,
        )

        slots: List[Slot] = []
        for day in dates.all_dates():
            if dates.is_excluded(day):
                if trace is not None:
                    trace.skipped_dates.append(day)
                continue

            day_trace = DayTrace(date=day)
            slots.extend(self.slots_for_day(day, events, day_trace))
            if trace is not None:
                trace.days.append(day_trace)

        if self.config.merge_consecutive:
            slots = merge_consecutive_slots(slots)

        return slots

    def slots_for_day(
        self,
        day: Date,
        events: Sequence[CalendarEvent],
        day_trace: Optional[DayTrace] = None,
    ) -> List[Slot]:
        """Free slots on a single calendar date."""
        day_trace = day_trace or DayTrace(date=day)

        if self.config.working_hours.is_empty:
            return []

        day_start, day_end = self.config.working_hours.window_for(day, self.tz)
        busy = self._busy_intervals(events, day_start, day_end, day_trace)
        gaps = self._extract_gaps(busy, day_start, day_end)

        slots: List[Slot] = []
        for gap_start, gap_end in gaps:
            if self.config.merge_consecutive:
                slots.append(Slot(start=gap_start, end=gap_end))
            else:
                slots.extend(
                    slice_gap(gap_start, gap_end, self.config.slot_duration_minutes)
                )

        day_trace.gaps = len(gaps)
        day_trace.slots = len(slots)
        logger.debug(
            "%s: %d event(s), %d gap(s), %d slot(s)",
            day, day_trace.events_considered, len(gaps), len(slots),
        )
        return slots

    def _busy_intervals(
        self,
        events: Sequence[CalendarEvent],
        day_start: DateTime,
        day_end: DateTime,
        day_trace: DayTrace,
    ) -> List[Interval]:
        """
        Collect the busy intervals relevant to one working window.

        Returned intervals are unbuffered and sorted by start; ties keep
        their input order.
        """
        busy: List[Interval] = []

        for event in events:
            start, end = event.span(self.tz)

            buffered_start = start.subtract(minutes=self.config.buffer_before_minutes)
            buffered_end = end.add(minutes=self.config.buffer_after_minutes)
            if not (buffered_start < day_end and buffered_end > day_start):
                continue

            if event.is_birthday:
                day_trace.birthdays_excluded += 1
                continue

            if event.is_all_day and self.config.ignore_all_day_events:
                day_trace.all_day_excluded += 1
                continue

            busy.append((start, end))

        day_trace.events_considered = len(busy)
        return sorted(busy, key=lambda interval: interval[0])

    def _extract_gaps(
        self,
        busy: Sequence[Interval],
        day_start: DateTime,
        day_end: DateTime,
    ) -> List[Interval]:
        """
        Subtract buffered busy intervals from the working window.

        Example:
        Working: 09:00 - 18:00
        Busy: [10:00-11:00, 14:00-15:00], no buffers
        Result: [09:00-10:00, 11:00-14:00, 15:00-18:00]
        """
        gaps: List[Interval] = []
        cursor = day_start

        for start, end in busy:
            adjusted_start = max(
                day_start, start.subtract(minutes=self.config.buffer_before_minutes)
            )
            adjusted_end = min(
                day_end, end.add(minutes=self.config.buffer_after_minutes)
            )

            if cursor < adjusted_start:
                gaps.append((cursor, adjusted_start))

            cursor = max(cursor, adjusted_end)

        if cursor < day_end:
            gaps.append((cursor, day_end))

        return gaps


def compute_availability(
    events: Sequence[CalendarEvent],
    config: SlotConfig,
    *,
    trace: bool = False,
    locale: str = "ja",
) -> AvailabilityResult:
    """
    Compute free slots and their text rendering.

    Args:
        events: Events from the selected calendars
        config: Slot settings for this request
        trace: Attach an AvailabilityTrace to the result
        locale: Output language of the formatted text ("ja" or "en")

    Returns:
        AvailabilityResult with slots, formatted text and optional trace

    Raises:
        InvalidRangeError: If the date range is inverted
        InvalidConfigError: If the settings are out of range
    """
    calculator = SlotCalculator(config)
    availability_trace = AvailabilityTrace() if trace else None

    slots = calculator.find_available_slots(events, trace=availability_trace)

    return AvailabilityResult(
        slots=slots,
        formatted_text=format_slots(slots, calculator.tz, locale=locale),
        trace=availability_trace,
    )
