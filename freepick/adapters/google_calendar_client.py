"""
Google Calendar API client for fetching calendar events.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import pendulum
import requests
from pendulum import Date, DateTime, FixedTimezone, Timezone

from ..domain.exceptions import AuthenticationError, CalendarAPIError
from ..domain.models import CalendarEvent, midnight

logger = logging.getLogger(__name__)


def utc_bounds(start_date: Date, end_date: Date) -> Tuple[DateTime, DateTime]:
    """
    Query window covering whole UTC days from start_date to end_date.

    Returns 00:00:00.000 of start_date and 23:59:59.999 of end_date in UTC.
    """
    time_min = pendulum.datetime(start_date.year, start_date.month, start_date.day, tz="UTC")
    time_max = pendulum.datetime(
        end_date.year, end_date.month, end_date.day, 23, 59, 59, 999000, tz="UTC"
    )
    return time_min, time_max


def fetch_window(
    start_date: Date,
    end_date: Date,
    tz: Timezone | FixedTimezone,
    *,
    buffer_before_minutes: int = 0,
    buffer_after_minutes: int = 0,
) -> Tuple[DateTime, DateTime]:
    """
    UTC query window covering start_date..end_date as days of the zone tz.

    The local range is widened by the buffers so events whose buffer reaches
    into the range are included, then rounded out to whole UTC days.
    """
    local_start = midnight(start_date, tz).subtract(minutes=buffer_after_minutes)
    local_end = midnight(end_date.add(days=1), tz).add(minutes=buffer_before_minutes)
    return utc_bounds(
        local_start.in_timezone("UTC").date(),
        local_end.in_timezone("UTC").date(),
    )


class GoogleCalendarClient:
    """
    Read-only client for the Google Calendar v3 REST API.

    Uses events.list with singleEvents=true, so recurring events arrive
    already expanded into single instances.
    """

    CALENDAR_API_ENDPOINT = "https://www.googleapis.com/calendar/v3"
    MAX_RESULTS_PER_PAGE = 250
    MAX_PAGES = 20

    def __init__(self, access_token: str, timeout: int = 30):
        """
        Initialize the Google Calendar client.

        Args:
            access_token: OAuth access token with calendar.readonly scope
            timeout: Time budget in seconds for one call, paging included
        """
        self.access_token = access_token
        self.timeout = timeout
        self._clock = time.monotonic
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    def get_events(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[CalendarEvent]:
        """
        Fetch all events of one calendar between time_min and time_max.

        Args:
            calendar_id: Google calendar id ("primary" for the user's own)
            time_min: Lower bound (exclusive bound on event end)
            time_max: Upper bound (exclusive bound on event start)

        Returns:
            List of CalendarEvent objects, cancelled events omitted

        Raises:
            AuthenticationError: If the token was rejected
            CalendarAPIError: If the API call fails or the time budget runs out
        """
        path = f"calendars/{quote(calendar_id, safe='')}/events"
        params: Dict[str, Any] = {
            "timeMin": time_min.in_timezone("UTC").to_iso8601_string(),
            "timeMax": time_max.in_timezone("UTC").to_iso8601_string(),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": self.MAX_RESULTS_PER_PAGE,
        }

        events: List[CalendarEvent] = []
        pages_fetched = 0
        deadline = self._clock() + self.timeout

        while pages_fetched < self.MAX_PAGES:
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise CalendarAPIError(
                    f"Fetching calendar {calendar_id} exceeded {self.timeout}s after {pages_fetched} page(s)"
                )
            data = self._get(path, params, timeout=remaining)
            pages_fetched += 1
            events.extend(self._parse_events_response(data, calendar_id))

            next_page_token = data.get("nextPageToken")
            if not next_page_token:
                break
            params["pageToken"] = next_page_token
        else:
            logger.warning(
                "Stopped paging calendar %s after %d pages", calendar_id, pages_fetched
            )

        logger.info(
            "Fetched %d event(s) from calendar %s in %d page(s)",
            len(events), calendar_id, pages_fetched,
        )
        return events

    def list_calendars(self) -> List[Dict[str, Any]]:
        """
        List the calendars visible to the user, primary calendar first.

        Returns:
            Dicts with id, summary, primary, background_color and access_role
        """
        data = self._get("users/me/calendarList", {"minAccessRole": "freeBusyReader"})

        calendars = [
            {
                "id": item.get("id", ""),
                "summary": item.get("summaryOverride") or item.get("summary", ""),
                "primary": bool(item.get("primary", False)),
                "background_color": item.get("backgroundColor"),
                "access_role": item.get("accessRole", ""),
            }
            for item in data.get("items", [])
        ]

        # Stable sort keeps Google's order among non-primary calendars
        return sorted(calendars, key=lambda calendar: not calendar["primary"])

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching the primary calendar.

        Raises:
            AuthenticationError: If the token was rejected
            CalendarAPIError: If connection test fails
        """
        return self._get("calendars/primary", {})

    def _get(
        self,
        path: str,
        params: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        url = f"{self.CALENDAR_API_ENDPOINT}/{path}"

        try:
            response = requests.get(
                url,
                headers=self.headers,
                params=params,
                timeout=self.timeout if timeout is None else timeout,
            )
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Failed to reach Google Calendar: {e}") from e

        if response.status_code == 401:
            raise AuthenticationError(
                "Google Calendar rejected the access token. Run 'freepick set-token' with a fresh token."
            )

        try:
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            raise CalendarAPIError(f"Google Calendar request failed: {e}") from e
        except ValueError as e:
            raise CalendarAPIError(f"Google Calendar returned invalid JSON: {e}") from e

    def _parse_events_response(
        self,
        response_data: Dict[str, Any],
        calendar_id: str,
    ) -> List[CalendarEvent]:
        """
        Parse one events.list page into our domain model.

        Response format:
        {
            "items": [
                {
                    "status": "confirmed",
                    "summary": "Weekly sync",
                    "start": {"dateTime": "2025-01-06T10:00:00+09:00"},
                    "end": {"dateTime": "2025-01-06T11:00:00+09:00"}
                },
                {
                    "summary": "Holiday",
                    "start": {"date": "2025-01-07"},
                    "end": {"date": "2025-01-08"}
                }
            ],
            "nextPageToken": "..."
        }
        """
        events: List[CalendarEvent] = []

        for item in response_data.get("items", []):
            if item.get("status") == "cancelled":
                continue

            try:
                events.append(CalendarEvent.from_google(item, calendar_id))
            except (KeyError, ValueError) as e:
                logger.warning(
                    "Could not parse event %s in calendar %s: %s",
                    item.get("id", "?"), calendar_id, e,
                )

        return events
