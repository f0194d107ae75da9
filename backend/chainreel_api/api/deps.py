"""
Common dependencies for ChainReel API endpoints.

Provides reusable FastAPI dependencies for database sessions,
authentication and the event-stream Redis client.
"""

from typing import AsyncGenerator

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from chainreel_api.core.database import get_async_session
from chainreel_api.core.redis import get_async_redis
from chainreel_api.core.security import get_current_user_id


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database session dependency.

    The session is automatically committed on success or
    rolled back on exception.

    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async for session in get_async_session():
        yield session


def get_event_redis() -> Redis:
    """Async Redis client for streaming chain events."""
    return get_async_redis()


# Re-export commonly used dependencies for convenience
__all__ = [
    "get_db",
    "get_event_redis",
    "get_current_user_id",
]
