"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_finder import (
    AvailabilityFinderService,
    AvailabilityReport,
    CalendarClientProtocol,
    FetchOutcome,
)

__all__ = [
    "AvailabilityFinderService",
    "AvailabilityReport",
    "CalendarClientProtocol",
    "FetchOutcome",
]
