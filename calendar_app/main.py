"""
Main application entry point - FastAPI app factory and configuration.
Run with: uvicorn calendar_app.main:app --reload

create_app() is the composition root: it builds the settings, the database
engine and the Google clients once and hangs them on ``app.state``, where
the dependencies in calendar_app.deps pick them up.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import partial
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from calendar_app.core.config import Settings, get_settings
from calendar_app.core.errors import AppError, ErrorKind, needs_reauth, status_for
from calendar_app.core.logging import configure_logging
from calendar_app.db.session import create_db_engine, create_session_factory, init_db
from calendar_app.environments.google.auth import GoogleAuthClient
from calendar_app.environments.google.calendar import GoogleCalendarClient
from calendar_app.routers import auth, calendar
from calendar_app.schemas.common import ErrorResponse
from calendar_app.services.session_gate import RefreshLocks


logger = logging.getLogger("calendar_app.main")


# ---------------------------------------------------------------------------
# ERROR HANDLERS
# ---------------------------------------------------------------------------
# The only place an ErrorKind becomes an HTTP status.

async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    settings: Settings = request.app.state.settings
    status_code = status_for(exc)

    if exc.kind is ErrorKind.VALIDATION:
        # Bad input is the caller's problem, not an incident
        logger.debug(f"Validation error: {exc.message}", extra={"path": request.url.path})
    elif exc.kind is ErrorKind.EXTERNAL_API:
        logger.error(
            f"Google API error: {exc.message}",
            extra={
                "path": request.url.path,
                "provider_status": exc.http_status,
                "provider_response": getattr(exc, "response", None),
            },
        )
    elif status_code >= 500:
        logger.error(f"{exc.kind.value}: {exc.message}", extra={"path": request.url.path})
    else:
        logger.info(f"{exc.kind.value}: {exc.message}", extra={"path": request.url.path})

    body = ErrorResponse(
        error=exc.message,
        needs_reauth=True if needs_reauth(exc) else None,
        details=None if settings.is_production else exc.details,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get the same 400 {error} shape as service validation."""
    settings: Settings = request.app.state.settings
    logger.debug("Request validation failed", extra={"path": request.url.path})

    body = ErrorResponse(
        error="Invalid request body",
        details=None if settings.is_production else jsonable_encoder(exc.errors()),
    )
    return JSONResponse(
        status_code=400,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"error": "Something went wrong!"})


# ---------------------------------------------------------------------------
# APPLICATION FACTORY
# ---------------------------------------------------------------------------

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build a configured application.

    Args:
        settings: Explicit settings (tests); defaults to environment/.env
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    engine = create_db_engine(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)
        logger.info(
            f"{settings.APP_NAME} started",
            extra={"environment": settings.ENVIRONMENT, "origins": settings.allowed_origins},
        )
        yield
        engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.auth_client = GoogleAuthClient.from_settings(settings)
    app.state.calendar_client_factory = partial(
        GoogleCalendarClient, timeout=settings.HTTP_TIMEOUT_SECONDS
    )
    app.state.refresh_locks = RefreshLocks()

    # -----------------------------------------------------------------------
    # CORS MIDDLEWARE
    # -----------------------------------------------------------------------
    # The session cookie rides on cross-origin requests, so credentials are
    # allowed and origins are an explicit list (never "*").
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # -----------------------------------------------------------------------
    # REGISTER ROUTERS
    # -----------------------------------------------------------------------
    # auth.router: /auth/google, /auth/google/callback, /auth/status, /auth/logout
    # calendar.router: /calendar/status, /test, /events, /events/{id}, /stats
    app.include_router(auth.router, prefix=settings.API_PREFIX)
    app.include_router(calendar.router, prefix=settings.API_PREFIX)

    # -----------------------------------------------------------------------
    # HEALTH CHECK ENDPOINT
    # -----------------------------------------------------------------------
    @app.get("/health", tags=["health"])
    def health_check():
        """
        Liveness probe that also reports database reachability.

        Returns:
            {"status": "OK", "message": "Server is running", "database": ...}
        """
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            database = "connected"
        except SQLAlchemyError:
            logger.warning("Health check could not reach the database")
            database = "disconnected"

        return {
            "status": "OK",
            "message": "Server is running",
            "database": database,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()
