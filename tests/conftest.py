# tests/conftest.py

import os
import tempfile
from pathlib import Path

# Environment MUST be set before task_tracker is imported: settings are cached
# and the engine is built at import time.
_DB_DIR = Path(tempfile.mkdtemp(prefix="task-tracker-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'tasks.sqlite3'}"
os.environ["REDIS_DSN"] = ""
os.environ["TIMEZONE"] = "UTC"

import httpx
import pytest
import pytest_asyncio

from task_tracker.cache.layer import task_cache
from task_tracker.database import (
    async_session,
    create_db_and_tables,
    drop_db_and_tables,
    engine,
)
from task_tracker.main import app


@pytest_asyncio.fixture()
async def database():
    """Fresh schema and an empty L1 cache for every test."""
    await drop_db_and_tables()
    await create_db_and_tables()
    task_cache.clear_local()
    yield
    task_cache.clear_local()
    await engine.dispose()


@pytest_asyncio.fixture()
async def db(database):
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture()
async def client(database):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def alice() -> dict:
    return {"X-User-Id": "1"}


@pytest.fixture()
def bob() -> dict:
    return {"X-User-Id": "2"}
