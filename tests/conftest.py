"""
Pytest configuration and fixtures.

Each test gets a fresh SQLite file database (async, via aiosqlite); the
repository, aggregator and HTTP client all point at it.
"""
import os

# Must be set before network32 is imported: settings are read at import time
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from data_builder import DataBuilder
from network32 import models  # noqa: F401  (registers tables on Base.metadata)
from network32.aggregator import FeedAggregator
from network32.database import Base, get_db
from network32.repository import FeedRepository
from network32.schemas import FeedPreferences


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'feed.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def data(session_factory):
    return DataBuilder(session_factory)


@pytest.fixture
def repository(session_factory):
    return FeedRepository(session_factory)


@pytest.fixture
def aggregator(repository):
    return FeedAggregator(repository)


@pytest.fixture
def preferences_store(monkeypatch):
    """In-memory stand-in for the Redis preference calls."""
    from network32.clients import redis_client

    store: dict[str, FeedPreferences] = {}

    async def get_prefs(user_id):
        return store.get(user_id)

    async def set_prefs(user_id, preferences):
        store[user_id] = preferences

    monkeypatch.setattr(redis_client, "get_feed_preferences", get_prefs)
    monkeypatch.setattr(redis_client, "set_feed_preferences", set_prefs)
    return store


@pytest.fixture
async def client(session_factory, repository, preferences_store, monkeypatch):
    """ASGI client with the database, repository and MinIO signer swapped for test doubles."""
    from network32.main import app
    from network32.routers import feed

    def fake_sign(key, expires_in=None):
        return f"https://media.test/{key}" if key else None

    monkeypatch.setattr(feed, "get_presigned_url", fake_sign)

    async def test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = test_db
    app.dependency_overrides[feed.get_repository] = lambda: repository

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
