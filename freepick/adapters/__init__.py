"""
Adapters layer - External integrations (Google Calendar API, token storage).
"""

from .google_calendar_client import GoogleCalendarClient, fetch_window, utc_bounds
from .mock_calendar_client import MockCalendarClient
from .token_store import TokenStore

__all__ = ["GoogleCalendarClient", "MockCalendarClient", "TokenStore", "fetch_window", "utc_bounds"]
