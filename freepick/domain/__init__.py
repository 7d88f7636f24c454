"""
Domain layer - Pure business logic without external dependencies.
"""

from .day_walker import DateRange, iter_dates, next_date
from .exceptions import (
    AuthenticationError,
    CalendarAPIError,
    CalendarFetchFailure,
    FreePickError,
    InvalidConfigError,
    InvalidRangeError,
    PartialFetchFailure,
)
from .formatter import format_slots
from .models import (
    AvailabilityResult,
    AvailabilityTrace,
    CalendarEvent,
    Slot,
    SlotConfig,
    WorkingHours,
)
from .slot_calculator import SlotCalculator, compute_availability, merge_consecutive_slots

__all__ = [
    "AuthenticationError",
    "AvailabilityResult",
    "AvailabilityTrace",
    "CalendarAPIError",
    "CalendarEvent",
    "CalendarFetchFailure",
    "DateRange",
    "FreePickError",
    "InvalidConfigError",
    "InvalidRangeError",
    "PartialFetchFailure",
    "Slot",
    "SlotCalculator",
    "SlotConfig",
    "WorkingHours",
    "compute_availability",
    "format_slots",
    "iter_dates",
    "merge_consecutive_slots",
    "next_date",
]
