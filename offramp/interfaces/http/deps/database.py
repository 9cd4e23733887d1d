"""Database dependency providers."""

from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from offramp.infrastructure.database.session import get_session_factory as _get_session_factory
from offramp.infrastructure.database.session import session_scope


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return _get_session_factory()


async def get_db_session(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    async with session_scope(factory) as session:
        yield session


__all__ = ["get_db_session", "get_session_factory"]
