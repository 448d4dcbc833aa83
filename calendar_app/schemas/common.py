"""
Shared schema configuration and the error body returned by every endpoint.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for API payloads: snake_case attributes, camelCase JSON.

    populate_by_name lets services build models from either spelling.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(CamelModel):
    """
    Body of every error response.

    Example:
    {
        "error": "Token refresh failed - please re-authenticate",
        "needsReauth": true
    }
    """
    error: str
    needs_reauth: Optional[bool] = None
    details: Optional[Any] = None


class MessageResponse(CamelModel):
    message: str
