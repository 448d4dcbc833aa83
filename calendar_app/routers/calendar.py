"""
Calendar Router - Google Calendar endpoints for the signed-in user.

Endpoints:
==========
- GET    /calendar/status            → Connection flag
- GET    /calendar/test              → Probe Google with a one-event listing
- GET    /calendar/events            → List events (timeMin, timeMax, maxResults,
                                       orderBy, singleEvents)
- POST   /calendar/events            → Create an event {name, startDateTime, duration}
- DELETE /calendar/events/{eventId}  → Delete an event
- GET    /calendar/stats             → Event counts for today, this week, next month

Every endpoint requires a session. An expired Google token is refreshed
before the handler runs; see calendar_app.services.session_gate.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from calendar_app.deps import get_calendar_service
from calendar_app.schemas.calendar import (
    CalendarStatsResponse,
    CalendarStatusResponse,
    CalendarTestResponse,
    CreateEventBody,
    CreateEventResponse,
    DeleteEventResponse,
    EventListResponse,
)
from calendar_app.services.calendar_service import CalendarService


# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/calendar", tags=["calendar"])


# ---------------------------------------------------------------------------
# ENDPOINTS
# ---------------------------------------------------------------------------

@router.get("/status", response_model=CalendarStatusResponse)
def calendar_status(service: CalendarService = Depends(get_calendar_service)):
    return service.status()


@router.get("/test", response_model=CalendarTestResponse)
async def calendar_test(service: CalendarService = Depends(get_calendar_service)):
    """Confirm the stored token can read the calendar."""
    return await service.test_connection()


@router.get("/events", response_model=EventListResponse)
async def list_events(
    time_min: Optional[str] = Query(None, alias="timeMin", description="ISO 8601 lower bound (default now)"),
    time_max: Optional[str] = Query(None, alias="timeMax", description="ISO 8601 upper bound"),
    max_results: Optional[str] = Query(None, alias="maxResults", description="1-2500, default 50"),
    order_by: Optional[str] = Query(None, alias="orderBy", description="startTime or updated"),
    single_events: Optional[str] = Query(None, alias="singleEvents", description="true or false, default true"),
    service: CalendarService = Depends(get_calendar_service),
):
    """
    List events from the primary calendar.

    Query values are taken as strings and validated by the service, so a
    bad value produces a 400 with a readable message.
    """
    return await service.list_events(
        time_min=time_min,
        time_max=time_max,
        max_results=max_results,
        order_by=order_by,
        single_events=single_events,
    )


@router.post("/events", response_model=CreateEventResponse)
async def create_event(
    body: CreateEventBody,
    service: CalendarService = Depends(get_calendar_service),
):
    """
    Create a timed event.

    Example request:
    {"name": "Standup", "startDateTime": "2025-01-01T10:00:00Z", "duration": 30}
    """
    return await service.create_event(body.to_payload())


@router.delete("/events/{event_id}", response_model=DeleteEventResponse)
async def delete_event(
    event_id: str,
    service: CalendarService = Depends(get_calendar_service),
):
    return await service.delete_event(event_id)


@router.get("/stats", response_model=CalendarStatsResponse)
async def calendar_stats(service: CalendarService = Depends(get_calendar_service)):
    """Dashboard counters; total equals the upcoming count."""
    return await service.stats()
