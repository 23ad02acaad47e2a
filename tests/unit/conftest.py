"""Shared fixtures."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest_asyncio

from boostsec.api_test_runner.persistence.database import Database


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    """Create a fresh SQLite database for each test."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'results.db'}")
    await db.init_schema()
    yield db
    await db.close()
