"""Database connection and session handling.

Uses service-specific config with fail-fast validation.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from shared.database import create_engine, create_session_maker

from .config import get_settings

# Get validated settings - will fail fast if DATABASE_URL is not set
settings = get_settings()

engine = create_engine(settings.database_url)
async_session_maker = create_session_maker(engine)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Get async database session."""
    async with async_session_maker() as session:
        yield session
