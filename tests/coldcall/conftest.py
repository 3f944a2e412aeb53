"""Shared fixtures for the cold-call tests.

Every test gets a fresh in-memory SQLite database (via aiosqlite) with the
full schema created. Seed helpers live in ``factories``.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Keep vendor clients unconfigured regardless of the developer's shell
for _var in (
    "OPENAI_API_KEY",
    "BROWSER_USE_API_KEY",
    "GOOGLE_MAPS_API_KEY",
    "YELP_API_KEY",
    "VAPI_API_KEY",
    "DATABASE_URL",
):
    os.environ.pop(_var, None)

from coldcall.models import Base, DatabaseManager, create_test_engine

from factories import fake_llm


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory database with all tables created."""
    engine = create_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    DatabaseManager.use_engine(engine)
    yield engine
    DatabaseManager.use_engine(None)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def session_scope(session_factory: async_sessionmaker[AsyncSession]):
    """Commit-or-rollback session factory, like ``get_db_session``."""

    @asynccontextmanager
    async def scope() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return scope


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def unconfigured_llm():
    """LLM that always fails, forcing the deterministic fallbacks."""
    return fake_llm()
