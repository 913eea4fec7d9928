"""Database connection and session management.

Uses lazy initialization to ensure the engine is created within
the correct event loop context, avoiding asyncpg event loop issues.

Supports PostgreSQL (``postgresql+asyncpg://``) for deployments and
SQLite (``sqlite+aiosqlite://``) for local development and tests.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from coldchain.config import settings

# Engine and session maker - lazily initialized
_engine: AsyncEngine | None = None
_async_session_maker: async_sessionmaker[AsyncSession] | None = None


def is_sqlite(url: str) -> bool:
    """Check whether a database URL points at SQLite."""
    return url.startswith("sqlite")


def _enable_sqlite_pragmas(engine: AsyncEngine) -> None:
    """Configure each SQLite connection for concurrent ticks."""

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        # Wait for locks held by an overlapping tick instead of failing
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()


def create_engine_for_url(url: str, pooled: bool = True) -> AsyncEngine:
    """Create an async engine with settings appropriate for the backend.

    Args:
        url: SQLAlchemy database URL.
        pooled: Use connection pooling (disabled in tests).
    """
    if is_sqlite(url):
        engine = create_async_engine(url, connect_args={"timeout": 30})
        _enable_sqlite_pragmas(engine)
        return engine

    if not pooled:
        # NullPool for testing to avoid event loop issues
        return create_async_engine(url, poolclass=NullPool)

    return create_async_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    """Get or create the database engine.

    Creates the engine lazily to ensure it's created within
    the correct event loop context.
    """
    global _engine
    if _engine is None:
        _engine = create_engine_for_url(
            settings.database_url,
            pooled=not settings.testing,
        )
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get or create the session maker."""
    global _async_session_maker
    if _async_session_maker is None:
        _async_session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting database sessions."""
    session_maker = get_session_maker()
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_all_tables(engine: AsyncEngine | None = None) -> None:
    """Create all tables from model metadata.

    Used for SQLite development databases and tests; PostgreSQL
    deployments are migrated with Alembic.
    """
    from coldchain.models import Base

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_database_connection() -> bool:
    """
    Check if the database is reachable.

    Returns:
        True if database is connected, False otherwise.
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True
    except Exception:
        return False


async def close_database() -> None:
    """Close the database engine and all connections."""
    global _engine, _async_session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_maker = None

