"""
Google Environment Module - OAuth sign-in and Google Calendar events.

One OAuth grant covers both: the profile scopes identify the user and the
calendar.events scope authorizes the events client.
"""

from calendar_app.environments.google.auth import GoogleAuthClient
from calendar_app.environments.google.calendar import GoogleCalendarClient

__all__ = ["GoogleAuthClient", "GoogleCalendarClient"]
