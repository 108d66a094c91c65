"""Shared fixtures: every database test gets its own SQLite database file."""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["READ_REPLICA_ENABLED"] = "false"

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import cyclecoach.models  # noqa: F401
from cyclecoach.db.database import Base


@pytest_asyncio.fixture
async def engine(tmp_path):
    # A file (not :memory:) so concurrent sessions get their own connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cyclecoach.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
