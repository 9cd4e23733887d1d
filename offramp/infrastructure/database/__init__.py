"""Database infrastructure helpers (engine, sessions, migrations)."""

from .base import Base
from .session import (
    build_session_factory,
    create_engine_from_url,
    dispose_engine,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
    session_scope,
)

__all__ = [
    "Base",
    "build_session_factory",
    "create_engine_from_url",
    "dispose_engine",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "session_scope",
]
