from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime, timezone

import pytest

from synclog.config import StoreConfig
from synclog.registry import TableRegistry
from synclog.store.memory import InMemoryDataStore
from synclog.store.sqlite import SqliteDataStore, make_engine

from _models import Note, TodoItem

DEFAULT_TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
FIXED_NOW = datetime(2024, 5, 17, 12, 30, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def database_url() -> str:
    """
    Every store gets its own private in-memory SQLite database.
    """
    return DEFAULT_TEST_DB_URL


@pytest.fixture
def registry() -> TableRegistry:
    registry = TableRegistry()
    registry.register(TodoItem)
    registry.register(Note, "notes")
    return registry


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
async def sqlite_store(database_url: str) -> AsyncIterator[SqliteDataStore]:
    """SQLite store with the operation table and the test record tables created."""
    config = StoreConfig(url=database_url)
    store = SqliteDataStore(make_engine(config), config)
    await store.initialize(["todo_items", "notes"])
    yield store
    await store.close()


@pytest.fixture
def memory_store() -> InMemoryDataStore:
    return InMemoryDataStore()


@pytest.fixture(params=["memory", "sqlite"])
async def data_store(request: pytest.FixtureRequest, database_url: str) -> AsyncIterator:
    """Each store implementation in turn, for contract tests."""
    if request.param == "memory":
        yield InMemoryDataStore()
        return

    config = StoreConfig(url=database_url)
    store = SqliteDataStore(make_engine(config), config)
    await store.initialize(["todo_items", "notes"])
    yield store
    await store.close()
