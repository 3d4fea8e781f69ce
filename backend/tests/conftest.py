"""
Route Details Backend: Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the whole suite.
How:   Repository and endpoint tests run against an in-memory SQLite database
       (aiosqlite + StaticPool, so every session shares one connection).
       Failure paths use AsyncMock sessions instead.

Fixture Hierarchy (all function-scoped):
    ├── session_factory:  async_sessionmaker bound to a fresh in-memory schema
    ├── db_session:       one AsyncSession from that factory
    ├── test_client:      httpx AsyncClient over the FastAPI app, with
    │                     get_db_session overridden to use session_factory
    ├── route_payload:    a valid camelCase create payload
    └── mock_db_session:  AsyncMock standing in for AsyncSession
"""

import os

# Settings are read at import time, so the environment is set first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["MESSAGE_TRANSPORT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Any, AsyncGenerator, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from route_details.database import Base, get_db_session, session_scope
from route_details.models import route as route_models  # noqa: F401


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """A session factory over a brand-new in-memory database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    AsyncMock standing in for AsyncSession.

    Usage:
        mock_db_session.execute.side_effect = OperationalError(...)
        with pytest.raises(StorageError):
            await route_service.find_one(mock_db_session, "some-id")
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient talking to the app in-process.

    ASGITransport does not run the lifespan, so the message server is never
    started here; messaging has its own tests.
    """
    from route_details.main import app

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_scope(session_factory) as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ══════════════════════════════════════════════════════════════════════════
# Payloads
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def route_payload() -> Dict[str, Any]:
    """A valid create payload in wire (camelCase) form, path of 3 points."""
    return {
        "name": "Home to Work",
        "travelMode": "DRIVING",
        "distance": {"value": 12345, "text": "12.3 km"},
        "duration": {"value": 1500, "text": "25 mins"},
        "origin": {"name": "Home", "lat": 40.7128, "lng": -74.006},
        "destination": {"name": "Office", "lat": 40.7580, "lng": -73.9855},
        "waypoints": [{"name": "Coffee Shop", "lat": 40.7306, "lng": -73.9866}],
        "path": [
            {"lat": 40.7128, "lng": -74.006},
            {"lat": 40.7306, "lng": -73.9866},
            {"lat": 40.7580, "lng": -73.9855},
        ],
        "userId": "user-42",
    }

