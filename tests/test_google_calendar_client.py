"""
Tests for the Google Calendar adapter.
"""

import pendulum
import pytest
import requests

from freepick.adapters import google_calendar_client
from freepick.adapters.google_calendar_client import (
    GoogleCalendarClient,
    fetch_window,
    utc_bounds,
)
from freepick.domain.exceptions import AuthenticationError, CalendarAPIError


class DummyResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


@pytest.fixture
def window():
    return utc_bounds(pendulum.date(2025, 1, 6), pendulum.date(2025, 1, 7))


def _install(monkeypatch, responses):
    calls = []

    def fake_get(url, headers=None, params=None, timeout=None):
        calls.append({"url": url, "params": dict(params or {}), "headers": headers, "timeout": timeout})
        return responses.pop(0)

    monkeypatch.setattr(google_calendar_client.requests, "get", fake_get)
    return calls


def test_utc_bounds():
    time_min, time_max = utc_bounds(pendulum.date(2025, 1, 6), pendulum.date(2025, 1, 7))

    assert time_min.to_iso8601_string() == "2025-01-06T00:00:00Z"
    assert time_max.to_iso8601_string() == "2025-01-07T23:59:59.999000Z"


def test_fetch_window_west_of_utc():
    """Evening events of the last local day fall on the next UTC day."""
    time_min, time_max = fetch_window(
        pendulum.date(2025, 1, 6), pendulum.date(2025, 1, 6), pendulum.timezone("America/New_York")
    )

    assert time_min.to_iso8601_string() == "2025-01-06T00:00:00Z"
    assert time_max.to_iso8601_string() == "2025-01-07T23:59:59.999000Z"


def test_fetch_window_east_of_utc():
    time_min, time_max = fetch_window(
        pendulum.date(2025, 1, 6), pendulum.date(2025, 1, 8), pendulum.timezone("Asia/Tokyo")
    )

    assert time_min.to_iso8601_string() == "2025-01-05T00:00:00Z"
    assert time_max.to_iso8601_string() == "2025-01-08T23:59:59.999000Z"


def test_fetch_window_includes_buffers():
    """A buffer reaching over a UTC midnight widens the window by a day."""
    time_min, time_max = fetch_window(
        pendulum.date(2025, 1, 6),
        pendulum.date(2025, 1, 6),
        pendulum.UTC,
        buffer_before_minutes=15,
        buffer_after_minutes=30,
    )

    assert time_min.to_iso8601_string() == "2025-01-05T00:00:00Z"
    assert time_max.to_iso8601_string() == "2025-01-07T23:59:59.999000Z"


def test_get_events_follows_pages(monkeypatch, window):
    calls = _install(
        monkeypatch,
        [
            DummyResponse(
                200,
                {
                    "items": [
                        {
                            "id": "a",
                            "summary": "Sync",
                            "start": {"dateTime": "2025-01-06T10:00:00+09:00"},
                            "end": {"dateTime": "2025-01-06T11:00:00+09:00"},
                        },
                        {"id": "b", "status": "cancelled", "start": {}, "end": {}},
                        {"id": "c", "summary": "Broken", "start": {"dateTime": "2025-01-06T10:00:00+09:00"}},
                    ],
                    "nextPageToken": "page-2",
                },
            ),
            DummyResponse(
                200,
                {
                    "items": [
                        {"id": "d", "summary": "Holiday", "start": {"date": "2025-01-07"}, "end": {"date": "2025-01-08"}}
                    ]
                },
            ),
        ],
    )

    client = GoogleCalendarClient(access_token="token", timeout=5)
    events = client.get_events("team@group.calendar.google.com", *window)

    assert [event.summary for event in events] == ["Sync", "Holiday"]
    assert events[1].is_all_day
    assert all(event.calendar_id == "team@group.calendar.google.com" for event in events)

    assert len(calls) == 2
    assert calls[0]["url"].endswith("/calendars/team%40group.calendar.google.com/events")
    assert calls[0]["params"]["singleEvents"] == "true"
    assert calls[0]["params"]["timeMin"] == "2025-01-06T00:00:00Z"
    assert "pageToken" not in calls[0]["params"]
    assert calls[1]["params"]["pageToken"] == "page-2"
    assert calls[0]["headers"]["Authorization"] == "Bearer token"
    assert 0 < calls[0]["timeout"] <= 5


def test_page_limit(monkeypatch, window):
    responses = [
        DummyResponse(200, {"items": [], "nextPageToken": f"page-{n}"})
        for n in range(GoogleCalendarClient.MAX_PAGES + 5)
    ]
    calls = _install(monkeypatch, responses)

    events = GoogleCalendarClient(access_token="token").get_events("primary", *window)

    assert events == []
    assert len(calls) == GoogleCalendarClient.MAX_PAGES


def test_paging_stops_when_time_budget_runs_out(monkeypatch, window):
    calls = _install(
        monkeypatch,
        [DummyResponse(200, {"items": [], "nextPageToken": f"page-{n}"}) for n in range(3)],
    )
    client = GoogleCalendarClient(access_token="token", timeout=5)
    client._clock = iter([0.0, 0.0, 2.0, 6.0]).__next__

    with pytest.raises(CalendarAPIError, match="exceeded 5s after 2 page"):
        client.get_events("primary", *window)

    assert [call["timeout"] for call in calls] == [5.0, 3.0]


def test_unauthorized(monkeypatch, window):
    _install(monkeypatch, [DummyResponse(401, {"error": {"message": "Invalid Credentials"}})])

    with pytest.raises(AuthenticationError):
        GoogleCalendarClient(access_token="expired").get_events("primary", *window)


def test_server_error(monkeypatch, window):
    _install(monkeypatch, [DummyResponse(500, {})])

    with pytest.raises(CalendarAPIError, match="500"):
        GoogleCalendarClient(access_token="token").get_events("primary", *window)


def test_transport_error(monkeypatch, window):
    def fake_get(*args, **kwargs):
        raise requests.exceptions.ConnectTimeout("timed out")

    monkeypatch.setattr(google_calendar_client.requests, "get", fake_get)

    with pytest.raises(CalendarAPIError, match="Failed to reach"):
        GoogleCalendarClient(access_token="token").get_events("primary", *window)


def test_list_calendars_puts_primary_first(monkeypatch):
    _install(
        monkeypatch,
        [
            DummyResponse(
                200,
                {
                    "items": [
                        {"id": "team@group.calendar.google.com", "summary": "Team", "accessRole": "reader"},
                        {"id": "me@example.com", "summary": "Me", "primary": True, "accessRole": "owner"},
                        {"id": "jp@holiday", "summary": "Holidays", "summaryOverride": "祝日"},
                    ]
                },
            )
        ],
    )

    calendars = GoogleCalendarClient(access_token="token").list_calendars()

    assert [calendar["id"] for calendar in calendars] == [
        "me@example.com",
        "team@group.calendar.google.com",
        "jp@holiday",
    ]
    assert calendars[2]["summary"] == "祝日"
