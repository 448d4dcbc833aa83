"""
Database session management - SQLAlchemy engine and session factory.
This module provides the database connection and session dependency for FastAPI.

The engine and session factory are built by ``create_app`` and kept on
``app.state``, so tests can run the same app against an in-memory database.
"""

from typing import Generator

from fastapi import Request
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from calendar_app.db.base import Base


def create_db_engine(database_url: str) -> Engine:
    """
    Build the SQLAlchemy engine for ``database_url``.

    - pool_pre_ping=True: test pooled connections before use, so a database
      restart does not surface as a failed request.
    - SQLite needs check_same_thread=False because FastAPI serves requests
      from a thread pool; an in-memory SQLite URL also needs StaticPool so
      every session sees the same database.
    """
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(database_url, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Factory for per-request sessions.

    - autocommit=False: callers decide when to commit
    - autoflush=False: no implicit flush before queries
    - expire_on_commit=False: a committed user can still be read by the route
    """
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    # Importing the models registers them on Base.metadata
    from calendar_app import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            ...

    One session per request; close() always runs, even if the route raises.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
