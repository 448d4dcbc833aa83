"""
Calendar schemas - request and response bodies for the calendar endpoints.

Event objects are passed through as Google returns them, so they are typed
as plain dicts here.
"""

from typing import Any, Dict, List, Optional

from pydantic import ConfigDict

from calendar_app.schemas.common import CamelModel


# ---------------------------------------------------------------------------
# REQUESTS
# ---------------------------------------------------------------------------

class CreateEventBody(CamelModel):
    """
    Body for POST /calendar/events.

    Fields are loosely typed; the calendar service validates them and
    answers malformed input with a 400 and a readable message.

    Example:
    {"name": "Standup", "startDateTime": "2025-01-01T10:00:00Z", "duration": 30}
    """
    model_config = ConfigDict(extra="allow")

    name: Optional[Any] = None
    start_date_time: Optional[Any] = None
    duration: Optional[Any] = None
    time_zone: Optional[str] = None
    description: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# RESPONSES
# ---------------------------------------------------------------------------

class CalendarStatusResponse(CamelModel):
    is_connected: bool
    message: str


class ProbeUserOut(CamelModel):
    email: str
    has_token: bool
    token_expiry: Optional[str] = None
    is_connected: bool


class CalendarTestResponse(CamelModel):
    success: bool
    message: str
    events_count: int
    user: ProbeUserOut


class EventListResponse(CamelModel):
    success: bool
    events: List[Dict[str, Any]]
    total: int


class CreatedEventOut(CamelModel):
    id: str
    summary: Optional[str] = None
    start: Optional[Dict[str, Any]] = None
    end: Optional[Dict[str, Any]] = None
    html_link: Optional[str] = None


class CreateEventResponse(CamelModel):
    success: bool
    message: str
    event: CreatedEventOut


class DeleteEventResponse(CamelModel):
    success: bool
    message: str
    event_id: str


class CalendarStatsOut(CamelModel):
    today_events: int
    this_week_events: int
    upcoming_events: int
    total_events: int


class CalendarStatsResponse(CamelModel):
    success: bool
    stats: CalendarStatsOut
