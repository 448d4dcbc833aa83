"""
Routers module - API endpoint handlers organized by feature.

- auth: Google sign-in, session status and logout
- calendar: Google Calendar events for the signed-in user
"""
