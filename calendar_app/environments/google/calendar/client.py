"""
Events client for the signed-in user's primary Google calendar.

Covers events.list, events.insert and events.delete of Calendar v3
(https://developers.google.com/calendar/api/v3/reference/events).
A non-success answer is raised as ExternalApiError with Google's status;
translating it into a dashboard message is the calendar service's job.

    client = GoogleCalendarClient(access_token=user.access_token)
    upcoming = await client.list_events(max_results=10)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from calendar_app.environments.base import ExternalApiError
from calendar_app.environments.google.calendar.schemas import (
    CalendarEvent,
    CalendarEventsResponse,
    EventCreateRequest,
)


logger = logging.getLogger("calendar_app.environments.google.calendar")


class GoogleCalendarClient:
    """
    Google Calendar API client bound to one access token.

    Attributes:
        access_token: Google OAuth access token with the calendar.events scope

    ``transport`` lets tests route requests to an httpx.MockTransport.
    """

    BASE_URL = "https://www.googleapis.com/calendar/v3"

    def __init__(
        self,
        access_token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport

    # -------------------------------------------------------------------------
    # HTTP CLIENT MANAGEMENT
    # -------------------------------------------------------------------------

    def _get_headers(self) -> dict:
        """Bearer auth for the bound token."""
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
        ok_statuses: Tuple[int, ...] = (200,),
    ) -> httpx.Response:
        """
        Send one request and return the response if its status is expected.

        Args:
            method: HTTP method (GET, POST, DELETE)
            endpoint: Path below BASE_URL
            params: Query parameters
            json_body: JSON request body
            ok_statuses: Status codes treated as success

        Returns:
            The raw response

        Raises:
            ExternalApiError: Non-success status (with Google's status code)
            or a network failure (no status)
        """
        url = f"{self.BASE_URL}{endpoint}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    params=params,
                    json=json_body,
                )
            except httpx.RequestError as e:
                logger.error("Calendar API unreachable", extra={"endpoint": endpoint, "error": str(e)})
                raise ExternalApiError("Network error calling Google Calendar", details=str(e))

        if response.status_code in ok_statuses:
            return response

        body = response.text

        if response.status_code == 401:
            logger.error("Calendar API answered 401")
            raise ExternalApiError(
                "Calendar API rejected the access token",
                http_status=401,
                response=body,
            )

        if response.status_code == 403:
            logger.error("Calendar API answered 403 (missing scope or API disabled)")
            raise ExternalApiError(
                "Calendar API refused access",
                http_status=403,
                response=body,
            )

        logger.error(
            f"Calendar API error: {response.status_code}",
            extra={"status_code": response.status_code, "endpoint": endpoint},
        )
        raise ExternalApiError(
            "Calendar API request failed",
            http_status=response.status_code,
            response=body,
        )

    @staticmethod
    def _parse_json(response: httpx.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError:
            raise ExternalApiError(
                "Calendar API returned a malformed response",
                http_status=response.status_code,
                response=response.text,
            )

    # -------------------------------------------------------------------------
    # CALENDAR EVENTS
    # -------------------------------------------------------------------------

    async def list_events(
        self,
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
        max_results: int = 50,
        order_by: Optional[str] = "startTime",
        single_events: bool = True,
        calendar_id: str = "primary",
    ) -> List[CalendarEvent]:
        """
        List events, by default from now on.

        ``order_by`` is only sent with ``single_events``; Google refuses
        orderBy when recurring events are not expanded.
        """
        if time_min is None:
            time_min = datetime.now(timezone.utc)

        params: Dict[str, Any] = {
            "maxResults": max_results,
            "timeMin": time_min.isoformat(),
            "singleEvents": str(single_events).lower(),
        }
        if single_events and order_by:
            params["orderBy"] = order_by
        if time_max:
            params["timeMax"] = time_max.isoformat()

        logger.info(
            "Fetching calendar events",
            extra={
                "calendar_id": calendar_id,
                "max_results": max_results,
                "time_min": params["timeMin"],
            },
        )

        response = await self._make_request(
            method="GET",
            endpoint=f"/calendars/{calendar_id}/events",
            params=params,
        )

        try:
            events_response = CalendarEventsResponse(**self._parse_json(response))
        except PydanticValidationError as e:
            raise ExternalApiError(
                "Calendar API returned a malformed response",
                http_status=response.status_code,
                details=str(e),
            )

        logger.info("Calendar events fetched", extra={"count": len(events_response.items)})

        return list(events_response.items)

    async def create_event(
        self,
        request: EventCreateRequest,
        calendar_id: str = "primary",
    ) -> CalendarEvent:
        """
        Insert a timed event and return it as Google stored it.
        """
        logger.info(
            "Creating calendar event",
            extra={"summary": request.summary, "calendar_id": calendar_id},
        )

        response = await self._make_request(
            method="POST",
            endpoint=f"/calendars/{calendar_id}/events",
            json_body=request.to_event_body(),
            ok_statuses=(200, 201),
        )

        try:
            created_event = CalendarEvent(**self._parse_json(response))
        except PydanticValidationError as e:
            raise ExternalApiError(
                "Calendar API returned a malformed response",
                http_status=response.status_code,
                details=str(e),
            )

        logger.info("Calendar event created", extra={"event_id": created_event.id})

        return created_event

    async def delete_event(
        self,
        event_id: str,
        calendar_id: str = "primary",
    ) -> bool:
        """
        Delete an event.

        Google answers 410 Gone for an event that was already deleted; both
        404 and 410 are reported as a 404.
        """
        logger.info(
            "Deleting calendar event",
            extra={"event_id": event_id, "calendar_id": calendar_id},
        )

        try:
            await self._make_request(
                method="DELETE",
                endpoint=f"/calendars/{calendar_id}/events/{quote(event_id, safe='')}",
                ok_statuses=(200, 204),
            )
        except ExternalApiError as e:
            if e.http_status in (404, 410):
                raise ExternalApiError("Event not found", http_status=404, response=e.response)
            raise

        logger.info("Calendar event deleted", extra={"event_id": event_id})

        return True
