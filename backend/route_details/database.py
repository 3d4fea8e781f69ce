"""
Route Details Backend: Database Session Management
====================================================

What:  Async SQLAlchemy engine, session factory, and session providers.
How:   Creates an async engine with connection pooling. Sessions are handed out
       per HTTP request (FastAPI dependency) or per inbound message
       (`session_scope()` context manager); both commit on success and roll
       back on error.
Who:   HTTP routes via Depends(get_db_session); the message server via
       session_scope(); the health check via `engine`.

Connection Pooling:
    pool_size=20, max_overflow=10, pool_pre_ping, pool_recycle=3600.
    SQLite URLs (tests, local demos) skip the pool arguments because the
    aiosqlite dialect may pick a pool class that does not accept them.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from route_details.config import settings


def _engine_options() -> Dict[str, Any]:
    """Builds create_async_engine() keyword arguments for the configured URL."""
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(settings.database_url, **_engine_options())

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: response models are built from ORM attributes after
# the commit, outside any lazy-load context
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Registers models with a shared metadata object, which Alembic reads for
    migrations and the test suite uses for create_all().
    """
    pass


# ── Session Providers ─────────────────────────────────────────────────────
@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker = async_session_factory,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Provides a transactional session for one unit of work.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the caller
        3. On success: commits
        4. On error: rolls back and re-raises
        5. Always: closes the session (returns the connection to the pool)

    Who: The message server wraps each inbound message in one scope; the
         FastAPI dependency below delegates here.
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Example usage in a route:
        @router.get("/routes/{route_id}")
        async def find_one(route_id: str, db: AsyncSession = Depends(get_db_session)):
            ...

    Raises:
        Any database exception raised while committing propagates to the
        global error handler.
    """
    async with session_scope() as session:
        yield session


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Closes all pooled connections; called from the application lifespan."""
    await engine.dispose()
