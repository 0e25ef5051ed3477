"""
Database session management.
Handles the SQLite connection and session lifecycle with async support.
"""
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy import event, Engine, create_engine
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.pool import NullPool

from backend.app.config import get_settings

settings = get_settings()

# Seconds a writer waits for the SQLite write lock before "database is locked"
SQLITE_BUSY_TIMEOUT = 30


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """
    Enable foreign key constraints for SQLite.
    Required for ON DELETE CASCADE from users to devices/accounts/transactions.

    Note: This event listener applies to ALL sync engines (including the one backing async).
    """
    if "sqlite" not in type(dbapi_conn).__module__:
        return
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _ensure_sqlite_directory(db_url: str) -> None:
    """Create the parent directory of a file-based SQLite database."""
    if db_url.startswith("sqlite:///"):
        db_path = db_url.replace("sqlite:///", "")
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def get_sync_engine():
    """
    Create a SYNC database engine for non-async operations.

    Used by:
    - Alembic migrations
    - Test fixtures that (re)create the schema

    Returns:
        Engine: SQLAlchemy sync engine
    """
    db_url = get_settings().DATABASE_URL
    _ensure_sqlite_directory(db_url)

    connect_args = {"timeout": SQLITE_BUSY_TIMEOUT} if db_url.startswith("sqlite") else {}
    return create_engine(
        db_url,
        echo=False,
        poolclass=NullPool,
        connect_args=connect_args,
        )


def get_async_engine():
    """
    Create the async database engine.

    sqlite:/// URLs are rewritten to sqlite+aiosqlite:///; URLs that already
    name an async driver are used as-is.

    Returns:
        AsyncEngine: SQLAlchemy async engine
    """
    db_url = get_settings().DATABASE_URL
    _ensure_sqlite_directory(db_url)

    async_db_url = db_url.replace("sqlite:///", "sqlite+aiosqlite:///")
    connect_args = {"timeout": SQLITE_BUSY_TIMEOUT} if async_db_url.startswith("sqlite") else {}

    engine = create_async_engine(
        async_db_url,
        echo=False,
        # NullPool for SQLite - each session gets its own connection
        poolclass=NullPool,
        connect_args=connect_args,
        )
    return engine


async_engine = get_async_engine()  # For FastAPI app


def new_session() -> AsyncSession:
    """
    Open a standalone session (scripts, CLI, startup seeding).

    Returns:
        AsyncSession: to be used as `async with new_session() as session:`
    """
    return AsyncSession(async_engine, expire_on_commit=False)


async def get_session_generator() -> AsyncGenerator[AsyncSession, None]:
    """
    Get an async database session for dependency injection.

    Usage in FastAPI:
        @router.get("/")
        async def endpoint(session: AsyncSession = Depends(get_session_generator)):
            result = await session.execute(select(Model))
            ...

    Yields:
        AsyncSession: one session per request, closed when the request ends
    """
    async with new_session() as session:
        yield session
