"""
Calendar service - validated calendar operations for an authenticated user.

Input checks run before any call to Google, so a malformed request never
costs a provider round trip. Provider failures are re-raised with messages
meant for the dashboard; the provider's own text travels in ``details``.
"""

import asyncio
import calendar
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from calendar_app.core.errors import (
    CalendarNotConnected,
    ExternalApiError,
    ValidationError,
)
from calendar_app.environments.google.calendar import (
    DEFAULT_EVENT_DESCRIPTION,
    EventCreateRequest,
    GoogleCalendarClient,
)
from calendar_app.models.user import User, as_utc

logger = logging.getLogger("calendar_app.services.calendar")

CalendarClientFactory = Callable[[str], GoogleCalendarClient]


# ---------------------------------------------------------------------------
# LIMITS
# ---------------------------------------------------------------------------
DEFAULT_MAX_RESULTS = 50
MAX_RESULTS_LIMIT = 2500
STATS_MAX_RESULTS = 100
ORDER_BY_VALUES = ("startTime", "updated")

AUTH_FAILED_MESSAGE = "Authentication failed - please reconnect your calendar"


# ---------------------------------------------------------------------------
# INPUT PARSING
# ---------------------------------------------------------------------------

def parse_iso_datetime(value: Any, field: str) -> datetime:
    """
    Parse an ISO 8601 timestamp. A trailing ``Z`` means UTC, and a value
    without an offset is taken as UTC.

    Raises:
        ValidationError: "Invalid <field> format"
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid {field} format")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid {field} format")

    return as_utc(parsed)


def parse_duration_minutes(value: Any) -> int:
    """
    Accept a positive whole number of minutes as int, integral float or
    numeric string.

    Raises:
        ValidationError: "Duration must be a positive number"
    """
    error = ValidationError("Duration must be a positive number")

    # bool is an int subclass; true/false are not durations
    if isinstance(value, bool):
        raise error

    if isinstance(value, int):
        minutes = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise error
        minutes = int(value)
    elif isinstance(value, str):
        text = value.strip()
        # isdigit also accepts non-ASCII digits such as "²", which int() rejects
        if not (text.isascii() and text.isdigit()):
            raise error
        minutes = int(text)
    else:
        raise error

    if minutes <= 0:
        raise error
    return minutes


def parse_max_results(value: Any) -> int:
    """Default 50; must be an integer in [1, 2500]."""
    if value is None or value == "":
        return DEFAULT_MAX_RESULTS

    error = ValidationError(f"maxResults must be between 1 and {MAX_RESULTS_LIMIT}")
    if isinstance(value, bool):
        raise error
    try:
        number = int(str(value).strip())
    except ValueError:
        raise error

    if number < 1 or number > MAX_RESULTS_LIMIT:
        raise error
    return number


def parse_single_events(value: Any) -> bool:
    """'true'/'false' (any case); absent means true."""
    if value is None or value == "":
        return True
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    raise ValidationError("singleEvents must be 'true' or 'false'")


def resolve_order_by(order_by: Optional[str], single_events: bool) -> Optional[str]:
    """
    Google only orders expanded instances, so an explicit orderBy together
    with singleEvents=false is rejected rather than silently dropped.
    """
    if order_by is None or order_by == "":
        return "startTime" if single_events else None

    if order_by not in ORDER_BY_VALUES:
        raise ValidationError("orderBy must be 'startTime' or 'updated'")
    if not single_events:
        raise ValidationError("orderBy is only supported when singleEvents is true")
    return order_by


def add_months(value: datetime, months: int) -> datetime:
    """Calendar-month addition, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def stats_windows(now: datetime) -> Dict[str, Tuple[datetime, datetime]]:
    """
    Time windows for the dashboard counters, in UTC.

    - today: 00:00 to 23:59:59.999
    - thisWeek: Sunday 00:00 to Saturday 23:59:59.999
    - upcoming: now to one month from now
    """
    now = as_utc(now)
    start_of_today = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
    end_of_day = timedelta(days=1) - timedelta(milliseconds=1)

    # Python weekdays start on Monday (0); Sunday is 6
    days_since_sunday = (now.weekday() + 1) % 7
    start_of_week = start_of_today - timedelta(days=days_since_sunday)

    return {
        "today": (start_of_today, start_of_today + end_of_day),
        "thisWeek": (start_of_week, start_of_week + timedelta(days=6) + end_of_day),
        "upcoming": (now, add_months(now, 1)),
    }


# ---------------------------------------------------------------------------
# SERVICE
# ---------------------------------------------------------------------------

class CalendarService:
    """
    Calendar operations on behalf of one user.

    Args:
        user: Authenticated user with a usable access token
        client_factory: Builds a GoogleCalendarClient for an access token
    """

    def __init__(self, user: User, client_factory: CalendarClientFactory):
        self.user = user
        self.client = client_factory(user.access_token or "")

    def _require_connected(self) -> None:
        if not self.user.is_calendar_connected:
            raise CalendarNotConnected("Calendar not connected")

    # -------------------------------------------------------------------------
    # STATUS / TEST
    # -------------------------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        connected = self.user.is_calendar_connected
        return {
            "isConnected": connected,
            "message": "Calendar Connected" if connected else "Calendar Not Connected",
        }

    async def test_connection(self) -> Dict[str, Any]:
        """List a single event to prove the token and scope work."""
        try:
            events = await self.client.list_events(max_results=1)
        except ExternalApiError as e:
            raise self._translate(
                e,
                default="Calendar connection test failed",
                forbidden="Access forbidden - Google Calendar API may not be enabled or insufficient permissions",
            )

        expiry = self.user.token_expiry
        return {
            "success": True,
            "message": "Calendar connection test successful",
            "eventsCount": len(events),
            "user": {
                "email": self.user.email,
                "hasToken": bool(self.user.access_token),
                "tokenExpiry": as_utc(expiry).isoformat() if expiry else None,
                "isConnected": self.user.is_calendar_connected,
            },
        }

    # -------------------------------------------------------------------------
    # EVENTS
    # -------------------------------------------------------------------------

    async def list_events(
        self,
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
        max_results: Any = None,
        order_by: Optional[str] = None,
        single_events: Any = None,
    ) -> Dict[str, Any]:
        self._require_connected()

        start = parse_iso_datetime(time_min, "timeMin") if time_min else None
        end = parse_iso_datetime(time_max, "timeMax") if time_max else None
        limit = parse_max_results(max_results)
        expand = parse_single_events(single_events)
        ordering = resolve_order_by(order_by, expand)

        try:
            events = await self.client.list_events(
                time_min=start,
                time_max=end,
                max_results=limit,
                order_by=ordering,
                single_events=expand,
            )
        except ExternalApiError as e:
            raise self._translate(
                e,
                default="Failed to fetch calendar events",
                forbidden="Access forbidden - Google Calendar API may not be enabled or insufficient permissions",
                not_found="Calendar not found",
            )

        return {
            "success": True,
            "events": [event.to_api() for event in events],
            "total": len(events),
        }

    async def create_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a timed event from ``{name, startDateTime, duration,
        timeZone?, description?}``; the end is start + duration minutes.
        """
        name = payload.get("name")
        start_raw = payload.get("startDateTime")
        duration_raw = payload.get("duration")

        if (
            not isinstance(name, str)
            or not name.strip()
            or start_raw in (None, "")
            or duration_raw in (None, "")
        ):
            raise ValidationError("Missing required fields: name, startDateTime, duration")

        minutes = parse_duration_minutes(duration_raw)
        start = parse_iso_datetime(start_raw, "startDateTime")

        time_zone = payload.get("timeZone") or "UTC"
        description = payload.get("description") or DEFAULT_EVENT_DESCRIPTION

        try:
            end = start + timedelta(minutes=minutes)
        except OverflowError:
            raise ValidationError("Event end time is out of range")

        request = EventCreateRequest(
            summary=name.strip(),
            start_datetime=start,
            end_datetime=end,
            timezone=time_zone,
            description=description,
        )

        try:
            event = await self.client.create_event(request)
        except ExternalApiError as e:
            raise self._translate(e, default="Failed to create calendar event")

        logger.info("Event created", extra={"user_id": str(self.user.id), "event_id": event.id})

        created = event.to_api()
        return {
            "success": True,
            "message": "Event Created Successfully",
            "event": {
                "id": event.id,
                "summary": event.summary,
                "start": created.get("start"),
                "end": created.get("end"),
                "htmlLink": event.html_link,
            },
        }

    async def delete_event(self, event_id: Optional[str]) -> Dict[str, Any]:
        self._require_connected()

        if not event_id or not event_id.strip():
            raise ValidationError("Event ID is required")

        try:
            await self.client.delete_event(event_id)
        except ExternalApiError as e:
            raise self._translate(
                e,
                default="Failed to delete calendar event",
                forbidden="Access forbidden - insufficient permissions to delete this event",
                not_found="Event not found - it may have already been deleted",
            )

        logger.info("Event deleted", extra={"user_id": str(self.user.id), "event_id": event_id})

        return {
            "success": True,
            "message": "Event deleted successfully",
            "eventId": event_id,
        }

    # -------------------------------------------------------------------------
    # STATS
    # -------------------------------------------------------------------------

    async def stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Event counts for today, this week and the coming month."""
        self._require_connected()

        windows = stats_windows(now or datetime.now(timezone.utc))

        try:
            results: List[list] = await asyncio.gather(*(
                self.client.list_events(
                    time_min=start,
                    time_max=end,
                    max_results=STATS_MAX_RESULTS,
                    order_by="startTime",
                    single_events=True,
                )
                for start, end in windows.values()
            ))
        except ExternalApiError as e:
            raise self._translate(
                e,
                default="Failed to fetch calendar stats",
                forbidden="Access forbidden - Google Calendar API may not be enabled or insufficient permissions",
                not_found="Calendar not found",
            )

        counts = dict(zip(windows.keys(), (len(events) for events in results)))
        return {
            "success": True,
            "stats": {
                "todayEvents": counts["today"],
                "thisWeekEvents": counts["thisWeek"],
                "upcomingEvents": counts["upcoming"],
                "totalEvents": counts["upcoming"],
            },
        }

    # -------------------------------------------------------------------------
    # ERROR TRANSLATION
    # -------------------------------------------------------------------------

    @staticmethod
    def _translate(
        error: ExternalApiError,
        default: str,
        forbidden: Optional[str] = None,
        not_found: Optional[str] = None,
    ) -> ExternalApiError:
        """Swap the provider message for one the dashboard can show."""
        status = error.http_status
        if status == 401:
            message = AUTH_FAILED_MESSAGE
        elif status == 403 and forbidden:
            message = forbidden
        elif status == 404 and not_found:
            message = not_found
        else:
            message = default
            # Only the mapped statuses are passed through to the client
            if status in (403, 404):
                status = None

        return ExternalApiError(
            message,
            http_status=status,
            response=error.response,
            details=error.response or error.message,
        )
