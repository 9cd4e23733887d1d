"""Reusable FastAPI dependencies."""

from .admin import require_admin
from .database import get_db_session, get_session_factory
from .services import get_app_settings, get_order_service, get_provider_registry

__all__ = [
    "get_app_settings",
    "get_db_session",
    "get_order_service",
    "get_provider_registry",
    "get_session_factory",
    "require_admin",
]
