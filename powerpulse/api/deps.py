"""
FastAPI dependency injection providers.

Provides database sessions and the authenticated stream dependency for use
with FastAPI's Depends() mechanism.

CHANGELOG:
- 2026-10-12: DbSession wraps get_db; get_stream calls StreamAuth
- 2026-10-05: Add get_stream for the event ingest route
- 2026-10-04: Initial creation
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from powerpulse.db.session import get_async_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session.

    Tests replace this dependency through app.dependency_overrides.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    async for session in get_async_session():
        yield session


# Type alias for injecting an async DB session via FastAPI Depends().
DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_stream(request: Request) -> str:
    """Resolve the authenticated stream name with the StreamAuth on app.state.

    Args:
        request: The incoming FastAPI request.

    Returns:
        str: The authenticated stream name.
    """
    return await request.app.state.auth(request)
