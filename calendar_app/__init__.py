"""
Calendar Connect - Google sign-in and Google Calendar access for a web frontend.
"""

__version__ = "1.0.0"
