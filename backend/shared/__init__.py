"""
Shared infrastructure for the Polyphony backend.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- database: Supabase client factory
- exceptions: Base exception classes
- repository: Base class for Supabase repositories

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .database import get_supabase_client, reset_client_cache
from .exceptions import (
    PolyphonyError,
    NotFoundError,
    ValidationError,
    ConfigurationError,
    ExternalServiceError,
)

__all__ = [
    "Settings",
    "get_settings",
    "get_supabase_client",
    "reset_client_cache",
    "PolyphonyError",
    "NotFoundError",
    "ValidationError",
    "ConfigurationError",
    "ExternalServiceError",
]
