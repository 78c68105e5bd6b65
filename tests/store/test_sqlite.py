from __future__ import annotations

import asyncio

import pytest

from synclog.config import StoreConfig
from synclog.models import Operation, OperationType
from synclog.store.base import TableProvisioner, TransactionalStore
from synclog.store.sqlite import SqliteDataStore, make_engine

from _models import TodoItem


def _op(item_id: str = "item-1") -> Operation:
    return Operation(table_name="todo_items", op_type=OperationType.ADD, item_id=item_id)


async def test_sqlite_store_capabilities(sqlite_store: SqliteDataStore) -> None:
    assert isinstance(sqlite_store, TransactionalStore)
    assert isinstance(sqlite_store, TableProvisioner)


async def test_initialize_is_idempotent(sqlite_store: SqliteDataStore) -> None:
    await sqlite_store.add_operations([_op()])

    await sqlite_store.initialize(["todo_items"])

    assert len(await sqlite_store.get_operations()) == 1


async def test_ensure_table_creates_storage(sqlite_store: SqliteDataStore) -> None:
    await sqlite_store.ensure_table("projects")

    assert await sqlite_store.insert("projects", TodoItem(id="p1")) is True


async def test_ensure_table_rejects_bad_names(sqlite_store: SqliteDataStore) -> None:
    with pytest.raises(ValueError, match="Invalid table"):
        await sqlite_store.ensure_table("projects; DROP TABLE notes")


async def test_transaction_commits_all_writes(sqlite_store: SqliteDataStore) -> None:
    async with sqlite_store.transaction():
        await sqlite_store.insert("todo_items", TodoItem(id="item-1"))
        await sqlite_store.add_operations([_op()])

    assert await sqlite_store.find_by_id("todo_items", TodoItem, "item-1") is not None
    assert len(await sqlite_store.get_operations()) == 1


async def test_transaction_rolls_back_on_exception(sqlite_store: SqliteDataStore) -> None:
    with pytest.raises(RuntimeError, match="boom"):
        async with sqlite_store.transaction():
            await sqlite_store.insert("todo_items", TodoItem(id="item-1"))
            await sqlite_store.add_operations([_op()])
            raise RuntimeError("boom")

    assert await sqlite_store.find_by_id("todo_items", TodoItem, "item-1") is None
    assert await sqlite_store.get_operations() == []


async def test_nested_transactions_join_the_outer_one(sqlite_store: SqliteDataStore) -> None:
    with pytest.raises(RuntimeError):
        async with sqlite_store.transaction() as outer:
            async with sqlite_store.transaction() as inner:
                assert inner is outer
                await sqlite_store.insert("todo_items", TodoItem(id="item-1"))
            raise RuntimeError("boom")

    assert await sqlite_store.find_by_id("todo_items", TodoItem, "item-1") is None


async def test_duplicate_operation_id_is_rejected(sqlite_store: SqliteDataStore) -> None:
    op = _op()
    await sqlite_store.add_operations([op])

    assert await sqlite_store.add_operations([op]) is False
    assert len(await sqlite_store.get_operations()) == 1


async def test_operation_fields_round_trip(sqlite_store: SqliteDataStore) -> None:
    op = Operation(
        table_name="todo_items",
        op_type=OperationType.MODIFY,
        item_id="item-1",
        payload={"name": "new", "tags": ["a", "b"]},
        previous={"name": "old", "tags": []},
    )
    await sqlite_store.add_operations([op])

    (stored,) = await sqlite_store.get_operations()

    assert stored == op
    assert stored.op_type is OperationType.MODIFY


async def test_custom_operations_table() -> None:
    config = StoreConfig(operations_table="pending_ops")
    store = SqliteDataStore.from_config(config)
    try:
        await store.initialize()
        await store.add_operations([_op()])

        async with store.transaction() as session:
            row = await session.fetch_one("SELECT COUNT(*) AS n FROM pending_ops")
        assert row == {"n": 1}
    finally:
        await store.close()


async def test_file_database_persists_between_stores(tmp_path) -> None:
    config = StoreConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'client.db'}")

    first = SqliteDataStore(make_engine(config), config)
    await first.initialize(["todo_items"])
    await first.insert("todo_items", TodoItem(id="item-1", name="persisted"))
    await first.add_operations([_op()])
    await first.close()

    second = SqliteDataStore(make_engine(config), config)
    try:
        found = await second.find_by_id("todo_items", TodoItem, "item-1")
        assert found.name == "persisted"
        assert len(await second.get_operations()) == 1
    finally:
        await second.close()


async def test_concurrent_transactions_do_not_share_rollback(
    sqlite_store: SqliteDataStore,
) -> None:
    async def write(item_id: str, fail: bool) -> None:
        async with sqlite_store.transaction():
            await sqlite_store.insert("todo_items", TodoItem(id=item_id))
            await asyncio.sleep(0.02)
            if fail:
                raise RuntimeError("boom")

    results = await asyncio.gather(
        write("item-1", False), write("item-2", True), return_exceptions=True
    )

    assert results[0] is None
    assert isinstance(results[1], RuntimeError)
    assert await sqlite_store.find_by_id("todo_items", TodoItem, "item-1") is not None
    assert await sqlite_store.find_by_id("todo_items", TodoItem, "item-2") is None


async def test_transaction_is_scoped_to_its_store(
    sqlite_store: SqliteDataStore, database_url: str
) -> None:
    other = SqliteDataStore.from_config(StoreConfig(url=database_url))
    await other.initialize(["todo_items"])
    try:
        with pytest.raises(RuntimeError, match="boom"):
            async with sqlite_store.transaction():
                await sqlite_store.insert("todo_items", TodoItem(id="item-1"))
                await other.insert("todo_items", TodoItem(id="item-2"))
                raise RuntimeError("boom")

        assert await sqlite_store.find_by_id("todo_items", TodoItem, "item-1") is None
        assert await other.find_by_id("todo_items", TodoItem, "item-2") is not None
    finally:
        await other.close()
