"""
Google Calendar integration: events client and resource schemas.
"""

from calendar_app.environments.google.calendar.client import GoogleCalendarClient
from calendar_app.environments.google.calendar.schemas import (
    DEFAULT_EVENT_DESCRIPTION,
    CalendarEvent,
    CalendarEventsResponse,
    EventCreateRequest,
    EventTime,
)

__all__ = [
    "DEFAULT_EVENT_DESCRIPTION",
    "CalendarEvent",
    "CalendarEventsResponse",
    "EventCreateRequest",
    "EventTime",
    "GoogleCalendarClient",
]
