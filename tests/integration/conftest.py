"""Integration-test fixtures.

Postgres-backed tests share a single event loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session. They are skipped when the database is unreachable
or not migrated (make up + alembic upgrade head).
"""

import uuid

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import async_session_factory, get_db_session


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def db_available() -> bool:
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1 FROM lmsr_resolutions LIMIT 1"))
    except (OSError, SQLAlchemyError):
        return False
    return True


@pytest_asyncio.fixture(loop_scope="session")
async def db_session(db_available: bool) -> AsyncSession:  # type: ignore[override]
    """Per-test session; everything written is rolled back afterwards."""
    if not db_available:
        pytest.skip("Postgres with lmsr_* tables not available")
    sessions = get_db_session()
    session = await anext(sessions)
    try:
        yield session
    finally:
        await session.rollback()
        await sessions.aclose()


@pytest.fixture
def market_id() -> str:
    return f"MKT-IT-{uuid.uuid4().hex[:12]}"
