"""
User store - persistence operations for linked Google accounts.

Lookups go by primary key or by Google's subject id. Writes commit
immediately; a constraint violation is rolled back and surfaces as
StoreError so the caller never sees a half-written record.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from calendar_app.core.errors import StoreError
from calendar_app.models.user import User

logger = logging.getLogger("calendar_app.services.user_store")


class UserStore:
    """Reads and writes ``User`` rows through one request-scoped session."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: uuid.UUID) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def find_by_google_id(self, google_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.google_id == google_id).first()

    def save(self, user: User) -> User:
        """
        Insert or update ``user`` and commit.

        Raises:
            StoreError: The write violated a constraint or the database
                rejected it; the transaction is rolled back
        """
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error("User write violated a constraint", extra={"google_id": user.google_id})
            raise StoreError("Failed to save user", details=str(e.orig))
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("User write failed")
            raise StoreError("Failed to save user", details=str(e))

        self.db.refresh(user)
        return user

    def reload(self, user: User) -> User:
        """Re-read ``user`` from the database, discarding in-memory state."""
        self.db.refresh(user)
        return user
