"""
Domain-specific exception hierarchy for the FreePick application.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List


class FreePickError(Exception):
    """Base class for all application-level errors."""


class InvalidRangeError(FreePickError):
    """Raised when the requested date range starts after it ends."""


class InvalidConfigError(FreePickError):
    """Raised when slot settings are out of their allowed range."""


class CalendarAPIError(FreePickError):
    """Raised when calendar data cannot be fetched or parsed."""


class AuthenticationError(FreePickError):
    """Raised when no usable access token is available or it was rejected."""


@dataclass(frozen=True)
class CalendarFetchFailure:
    """One calendar that could not be fetched."""
    calendar_id: str
    reason: str


class PartialFetchFailure(FreePickError):
    """
    Some calendars failed while others succeeded.

    This is reported next to the computed slots rather than raised.
    """

    def __init__(self, failures: List[CalendarFetchFailure]):
        self.failures = list(failures)
        ids = ", ".join(failure.calendar_id for failure in self.failures)
        super().__init__(f"Could not fetch calendar(s): {ids}")

    @property
    def calendar_ids(self) -> List[str]:
        return [failure.calendar_id for failure in self.failures]
