"""Pytest configuration for integration tests.

Integration tests run against a real PostgreSQL database and are skipped
unless TEST_DATABASE_URL is set. The schema is created from the ORM
metadata for every test and dropped afterwards.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from hubnotify.core.config import DatabaseSettings
from hubnotify.db import create_engine, create_session_factory
from hubnotify.db.models import Base


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Engine bound to a freshly created schema."""
    engine = create_engine(DatabaseSettings(url=os.environ["TEST_DATABASE_URL"]))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)
