"""Summary: Google Calendar REST client.

Importance: Lists, creates, updates, and deletes events on the user's primary calendar.
Alternatives: Use CalDAV or the official Google Calendar SDK.
"""

from __future__ import annotations

import logging
import urllib.parse
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from akronom.google_api import google_api_request
from akronom.models import CalendarEventSummary, CreateEventIntent


logger = logging.getLogger(__name__)


class GoogleCalendarClient:
    """Summary: Calendar operations backed by the Google Calendar v3 API.

    Importance: Provides the calendar side of the assistant's context and actions.
    Alternatives: Mirror events locally through a sync token.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str,
        timezone: str = "UTC",
        calendar_id: str = "primary",
    ) -> None:
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._timezone = timezone
        self._calendar_id = calendar_id

    @property
    def _events_url(self) -> str:
        calendar = urllib.parse.quote(self._calendar_id, safe="")
        return f"{self._base_url}/calendars/{calendar}/events"

    def list_events(
        self,
        time_min: datetime | None = None,
        time_max: datetime | None = None,
        limit: int = 15,
        query: str | None = None,
    ) -> list[CalendarEventSummary]:
        """Summary: List upcoming events ordered by start time.

        Importance: Recurring events are expanded so each occurrence is listed.
        Alternatives: Fetch recurring masters and expand them locally.
        """

        start = time_min or datetime.now(ZoneInfo(self._timezone))
        payload = google_api_request(
            "GET",
            self._events_url,
            self._access_token,
            params={
                "timeMin": _rfc3339(start),
                "timeMax": _rfc3339(time_max) if time_max else None,
                "maxResults": limit,
                "singleEvents": "true",
                "orderBy": "startTime",
                "q": query or None,
            },
        )
        return [parse_calendar_event(item) for item in payload.get("items", [])]

    def create_event(self, intent: CreateEventIntent) -> CalendarEventSummary:
        """Summary: Create an event from an extracted intent.

        Importance: Executes the create-event action for the chat dispatcher.
        Alternatives: Use quickAdd and let Google parse free text.
        """

        body: dict[str, Any] = {
            "summary": intent.title,
            "start": self._time_field(intent.start, intent.all_day),
            "end": self._time_field(intent.end, intent.all_day),
        }
        if intent.location:
            body["location"] = intent.location
        if intent.description:
            body["description"] = intent.description
        if intent.attendees:
            body["attendees"] = [{"email": email} for email in intent.attendees]
        payload = google_api_request("POST", self._events_url, self._access_token, payload=body)
        event = parse_calendar_event(payload)
        logger.info("Created calendar event %s.", event.id)
        return event

    def update_event(
        self,
        event_id: str,
        title: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        all_day: bool = False,
        location: str | None = None,
        description: str | None = None,
    ) -> CalendarEventSummary:
        """Summary: Patch selected fields of an existing event.

        Importance: Only supplied fields are sent so untouched fields keep their values.
        Alternatives: Fetch, mutate, and PUT the complete event.
        """

        body: dict[str, Any] = {}
        if title is not None:
            body["summary"] = title
        if start is not None:
            body["start"] = self._time_field(start, all_day)
        if end is not None:
            body["end"] = self._time_field(end, all_day)
        if location is not None:
            body["location"] = location
        if description is not None:
            body["description"] = description
        payload = google_api_request(
            "PATCH",
            f"{self._events_url}/{urllib.parse.quote(event_id, safe='')}",
            self._access_token,
            payload=body,
        )
        return parse_calendar_event(payload)

    def delete_event(self, event_id: str) -> None:
        google_api_request(
            "DELETE",
            f"{self._events_url}/{urllib.parse.quote(event_id, safe='')}",
            self._access_token,
        )
        logger.info("Deleted calendar event %s.", event_id)

    def _time_field(self, value: datetime, all_day: bool) -> dict[str, str]:
        if all_day:
            return {"date": value.date().isoformat()}
        return {"dateTime": value.isoformat(), "timeZone": self._timezone}


def parse_calendar_event(item: dict[str, Any]) -> CalendarEventSummary:
    """Summary: Parse a Calendar API event into a CalendarEventSummary.

    Importance: All-day events carry `date`, timed events carry `dateTime`.
    Alternatives: Keep raw event dictionaries.
    """

    start_raw = item.get("start") or {}
    end_raw = item.get("end") or {}
    attendees = tuple(
        attendee["email"] for attendee in item.get("attendees", []) or [] if attendee.get("email")
    )
    return CalendarEventSummary(
        id=item.get("id", ""),
        title=item.get("summary") or "(No title)",
        start=_parse_event_time(start_raw),
        end=_parse_event_time(end_raw),
        all_day="date" in start_raw and "dateTime" not in start_raw,
        location=item.get("location", ""),
        description=item.get("description", ""),
        link=item.get("htmlLink"),
        attendees=attendees,
    )


def _parse_event_time(value: dict[str, Any]) -> datetime | None:
    if value.get("dateTime"):
        try:
            return datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
        except ValueError:
            return None
    if value.get("date"):
        try:
            return datetime.combine(date.fromisoformat(value["date"]), time())
        except ValueError:
            return None
    return None


def _rfc3339(value: datetime) -> str:
    """Calendar rejects naive timestamps, so naive values are treated as UTC."""

    if value.tzinfo is None:
        return value.isoformat() + "Z"
    return value.isoformat()


def window_end_for(text: str, now: datetime) -> datetime | None:
    """Summary: Infer the end of a listing window from phrases in a request.

    Importance: "today" and "this week" questions should not list next month's events.
    Alternatives: Always list the next N events regardless of phrasing.
    """

    lowered = text.lower()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if "today" in lowered:
        return start_of_day + timedelta(days=1)
    if "tomorrow" in lowered:
        return start_of_day + timedelta(days=2)
    if "this week" in lowered:
        return start_of_day + timedelta(days=7 - start_of_day.weekday())
    if "next week" in lowered:
        return now + timedelta(days=14)
    return None
