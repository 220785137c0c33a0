"""Database module.

- SQLAlchemy 2.x ORM models
- Async engine and session factory built from settings (psycopg driver)

The engine is owned by whoever creates it (the worker entry point) and
must be disposed on shutdown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from hubnotify.core.config import DatabaseSettings


def get_database_url(database: DatabaseSettings) -> str:
    """Get the database URL for the async driver.

    Args:
        database: Database settings.

    Returns:
        PostgreSQL connection URL using the psycopg driver.
    """
    url = str(database.url)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    elif url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    return url


def create_engine(database: DatabaseSettings) -> AsyncEngine:
    """Create the async database engine.

    Args:
        database: Database settings.

    Returns:
        Configured AsyncEngine with connection pooling.
    """
    return create_async_engine(
        get_database_url(database),
        pool_size=database.pool_size,
        max_overflow=database.max_overflow,
        pool_timeout=database.pool_timeout,
        pool_pre_ping=True,
        echo=database.echo,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine.

    Args:
        engine: The async engine sessions will use.

    Returns:
        Session factory producing AsyncSession instances.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
