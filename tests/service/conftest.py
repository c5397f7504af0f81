"""Fixtures for tests that exercise the API and worker against SQLite and fakeredis."""

from fakeredis import aioredis
from httpx import ASGITransport, AsyncClient
import pytest_asyncio

from shared.database import create_engine, create_session_maker
from shared.models import Base
from shared.redis_client import RedisStreamClient


@pytest_asyncio.fixture
async def engine():
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    return create_session_maker(engine)


@pytest_asyncio.fixture
async def redis():
    redis = aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.aclose()


@pytest_asyncio.fixture
async def client(session_maker, redis):
    """HTTP client for the API app with the database and Redis swapped out."""
    from api.database import get_async_session
    from api.main import app

    async def override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    app.state.redis = RedisStreamClient(client=redis)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
