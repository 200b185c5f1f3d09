"""
Pytest configuration and fixtures for schedcord tests.
"""

import sys
from pathlib import Path

import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from schedcord.database.db_connection import ConnectionManager  # noqa: E402


@pytest_asyncio.fixture
async def connection(tmp_path: Path):
    """A ConnectionManager opened on a fresh database file."""
    manager = ConnectionManager()
    await manager.open(tmp_path / "test.db")
    yield manager
    await manager.close()
