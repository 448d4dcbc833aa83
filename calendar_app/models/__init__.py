"""
ORM models. Importing this package registers every table on Base.metadata.
"""

from calendar_app.models.session import AuthSession
from calendar_app.models.user import User

__all__ = ["AuthSession", "User"]
