"""
Environments Module - External Service Integrations

Architecture Overview:
======================
environments/
├── __init__.py           # Module exports
├── base.py               # Provider contract and token/identity structures
└── google/
    ├── auth/             # Google OAuth authentication
    │   ├── client.py     # OAuth flow implementation
    │   └── schemas.py    # Auth-related data structures
    └── calendar/         # Google Calendar API
        ├── client.py     # Events client
        └── schemas.py    # Calendar data structures
"""

from calendar_app.environments.base import (
    EnvironmentProvider,
    ExternalApiError,
    ExternalAuthError,
    OAuthTokens,
    UserInfo,
)

__all__ = [
    "EnvironmentProvider",
    "ExternalApiError",
    "ExternalAuthError",
    "OAuthTokens",
    "UserInfo",
]
