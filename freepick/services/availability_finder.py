"""
Application services for finding open time across calendars.

The service fetches events per calendar through a calendar client adapter and
delegates the actual availability calculation to the domain-level
``compute_availability``. Each calendar is fetched independently, so one
unreachable calendar only produces a warning instead of failing the request.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

from pendulum import Date, DateTime

from ..adapters.google_calendar_client import fetch_window
from ..domain.exceptions import (
    AuthenticationError,
    CalendarAPIError,
    CalendarFetchFailure,
    FreePickError,
    PartialFetchFailure,
)
from ..domain.models import (
    AvailabilityResult,
    CalendarEvent,
    SlotConfig,
    TimezoneLike,
    resolve_timezone,
)
from ..domain.slot_calculator import compute_availability

logger = logging.getLogger(__name__)


class CalendarClientProtocol(Protocol):
    """Protocol describing the calendar client behaviour needed by the service."""

    def get_events(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[CalendarEvent]:
        """Return the events of one calendar inside the window."""


@dataclass
class FetchOutcome:
    """Events from the calendars that succeeded plus the ones that did not."""
    events: List[CalendarEvent] = field(default_factory=list)
    failures: List[CalendarFetchFailure] = field(default_factory=list)


@dataclass
class AvailabilityReport:
    """Computed availability and any calendars that could not be read."""
    result: AvailabilityResult
    partial_failure: Optional[PartialFetchFailure] = None

    @property
    def has_warnings(self) -> bool:
        return self.partial_failure is not None


class AvailabilityFinderService:
    """
    Orchestrates event retrieval and slot calculation.

    Dependency inversion toward a protocol makes it easy to plug in the real
    Google adapter or the mock implementation in tests.
    """

    def __init__(
        self,
        calendar_client: CalendarClientProtocol,
        fetch_timeout: float = 30,
    ) -> None:
        self._calendar_client = calendar_client
        self._fetch_timeout = fetch_timeout

    async def find_availability(
        self,
        config: SlotConfig,
        *,
        trace: bool = False,
        locale: str = "ja",
    ) -> AvailabilityReport:
        """
        Validate settings, fetch events, and compute available slots.

        Raises:
            InvalidRangeError: If the date range is inverted (before any fetch)
            InvalidConfigError: If the settings are out of range
            CalendarAPIError: If no calendar could be fetched at all
        """
        config.validate()

        outcome = await self.fetch_events(
            calendar_ids=config.calendar_ids,
            start_date=config.start_date,
            end_date=config.end_date,
            timezone=config.tz,
            buffer_before_minutes=config.buffer_before_minutes,
            buffer_after_minutes=config.buffer_after_minutes,
        )

        result = compute_availability(outcome.events, config, trace=trace, locale=locale)

        partial_failure = PartialFetchFailure(outcome.failures) if outcome.failures else None
        return AvailabilityReport(result=result, partial_failure=partial_failure)

    async def fetch_events(
        self,
        *,
        calendar_ids: Sequence[str],
        start_date: Date,
        end_date: Date,
        timezone: TimezoneLike = "UTC",
        buffer_before_minutes: int = 0,
        buffer_after_minutes: int = 0,
    ) -> FetchOutcome:
        """
        Fetch events for every calendar concurrently.

        The query window spans the requested dates as days of ``timezone``,
        widened by the buffers. Events are concatenated in calendar order.
        Failures are collected per calendar; only when all calendars fail is
        an error raised.
        """
        time_min, time_max = fetch_window(
            start_date,
            end_date,
            resolve_timezone(timezone),
            buffer_before_minutes=buffer_before_minutes,
            buffer_after_minutes=buffer_after_minutes,
        )
        calendar_list = list(calendar_ids)
        if not calendar_list:
            return FetchOutcome()

        # Own pool so timed-out fetches are abandoned instead of awaited on shutdown
        executor = ThreadPoolExecutor(
            max_workers=len(calendar_list), thread_name_prefix="freepick-fetch"
        )
        try:
            results = await asyncio.gather(
                *(
                    self._fetch_one(executor, calendar_id, time_min, time_max)
                    for calendar_id in calendar_list
                ),
                return_exceptions=True,
            )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        outcome = FetchOutcome()
        for calendar_id, result in zip(calendar_list, results):
            if isinstance(result, BaseException):
                # A rejected token affects every calendar alike
                if isinstance(result, AuthenticationError):
                    raise result
                if not isinstance(result, (FreePickError, asyncio.TimeoutError)):
                    raise result
                reason = (
                    f"timed out after {self._fetch_timeout}s"
                    if isinstance(result, asyncio.TimeoutError)
                    else str(result)
                )
                logger.warning("Fetching calendar %s failed: %s", calendar_id, reason)
                outcome.failures.append(CalendarFetchFailure(calendar_id=calendar_id, reason=reason))
            else:
                outcome.events.extend(result)

        if len(outcome.failures) == len(calendar_list):
            reasons = "; ".join(f"{f.calendar_id}: {f.reason}" for f in outcome.failures)
            raise CalendarAPIError(f"Could not fetch any calendar ({reasons})")

        return outcome

    async def _fetch_one(
        self,
        executor: ThreadPoolExecutor,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[CalendarEvent]:
        loop = asyncio.get_running_loop()
        return await asyncio.wait_for(
            loop.run_in_executor(
                executor, self._calendar_client.get_events, calendar_id, time_min, time_max
            ),
            timeout=self._fetch_timeout,
        )
