"""
Mock Google Calendar client for trying FreePick without an access token.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from pendulum import DateTime

from ..domain.models import CalendarEvent

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class MockCalendarClient:
    """
    Client that serves events from a JSON file.

    Each entry is a Google Calendar event item plus a ``calendarId`` key.
    """

    def __init__(self, data_file: Path | None = None):
        self.data_file = data_file or DEFAULT_DATA_FILE
        self._load_calendar_data()

    def _load_calendar_data(self):
        """Load mock calendar data from JSON file."""
        if self.data_file.exists():
            with open(self.data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            self.calendars: List[Dict[str, Any]] = data.get("calendars", [])
            self.calendar_events: List[Dict[str, Any]] = data.get("events", [])
        else:
            self.calendars = []
            self.calendar_events = []

    def get_events(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[CalendarEvent]:
        """Return the mock events of one calendar that overlap the window."""
        events: List[CalendarEvent] = []

        for item in self.calendar_events:
            if item.get("calendarId") != calendar_id:
                continue

            try:
                event = CalendarEvent.from_google(item, calendar_id)
            except (KeyError, ValueError) as e:
                logger.warning("Skipping invalid mock event %r: %s", item.get("summary"), e)
                continue

            start, end = event.span(time_min.timezone)
            if start < time_max and end > time_min:
                events.append(event)

        return events

    def list_calendars(self) -> List[Dict[str, Any]]:
        return sorted(self.calendars, key=lambda calendar: not calendar.get("primary", False))

    def test_connection(self) -> Dict[str, Any]:
        """Mock connection test."""
        return {"id": "mock.user@example.com", "summary": "Mock User", "timeZone": "Asia/Tokyo"}
