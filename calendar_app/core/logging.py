"""
Logging setup - one stdout handler on the ``calendar_app`` logger namespace.

Modules log through ``logging.getLogger("calendar_app.<module>")`` and pass
structured fields with ``extra={...}``. Access and refresh tokens are never
logged.
"""

import logging
import sys

LOGGER_NAMESPACE = "calendar_app"

_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Attach a console handler to the application logger (idempotent).

    Args:
        level: Log level name from settings (e.g. "INFO", "DEBUG")

    Returns:
        The configured ``calendar_app`` logger
    """
    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.setLevel(level.upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
        logger.addHandler(handler)

    return logger
