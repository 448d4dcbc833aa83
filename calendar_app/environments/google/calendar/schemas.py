"""
Google Calendar Schemas - Data structures for calendar operations.

These Pydantic models represent Google Calendar API resources. Unknown
fields are kept (extra="allow") so events reach the frontend exactly as
Google sent them.

Reference: https://developers.google.com/calendar/api/v3/reference
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Description used when the caller does not supply one
DEFAULT_EVENT_DESCRIPTION = "Event created via Calendar Connect"


class EventTime(BaseModel):
    """
    Event start or end time.

    Google Calendar API returns times in one of two formats:
    - dateTime: For timed events (e.g., "2024-01-15T10:00:00-05:00")
    - date: For all-day events (e.g., "2024-01-15")

    Values are kept as the strings Google sent.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    date_time: Optional[str] = Field(None, alias="dateTime")
    date: Optional[str] = Field(None)  # YYYY-MM-DD format for all-day events
    time_zone: Optional[str] = Field(None, alias="timeZone")


class CalendarEvent(BaseModel):
    """
    A Google Calendar event.

    Reference: https://developers.google.com/calendar/api/v3/reference/events
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., description="Unique event identifier")
    summary: Optional[str] = Field(None, description="Event title")
    description: Optional[str] = Field(None, description="Event description")
    location: Optional[str] = Field(None, description="Event location")
    status: Optional[str] = Field(None, description="confirmed, tentative or cancelled")
    html_link: Optional[str] = Field(None, alias="htmlLink", description="Link to the event in Google Calendar")

    start: Optional[EventTime] = Field(None, description="Event start time")
    end: Optional[EventTime] = Field(None, description="Event end time")

    def to_api(self) -> Dict[str, Any]:
        """Serialize with Google's field names, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CalendarEventsResponse(BaseModel):
    """Response from the events.list endpoint."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    kind: Optional[str] = None
    summary: Optional[str] = None
    time_zone: Optional[str] = Field(None, alias="timeZone")
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")
    items: List[CalendarEvent] = Field(default_factory=list)


class EventCreateRequest(BaseModel):
    """
    Validated input for creating a timed event.

    The calendar service builds this after checking the caller's payload;
    start and end are timezone-aware.
    """
    summary: str = Field(..., description="Event title")
    start_datetime: datetime = Field(..., description="Start time")
    end_datetime: datetime = Field(..., description="End time")
    timezone: str = Field(default="UTC", description="IANA timezone name")
    description: str = Field(default=DEFAULT_EVENT_DESCRIPTION)

    def to_event_body(self) -> Dict[str, Any]:
        """Build the request body for events.insert."""
        return {
            "summary": self.summary,
            "description": self.description,
            "start": {
                "dateTime": self.start_datetime.isoformat(),
                "timeZone": self.timezone,
            },
            "end": {
                "dateTime": self.end_datetime.isoformat(),
                "timeZone": self.timezone,
            },
        }
