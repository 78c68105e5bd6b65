from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from unittest.mock import AsyncMock

import pytest

from synclog.errors import TrackingError
from synclog.models import OperationType
from synclog.store.base import OperationStore
from synclog.store.memory import InMemoryDataStore
from synclog.tracker import ChangeTracker

from _models import TodoItem

CREATED = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
UPDATED = datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)


class Color(Enum):
    RED = "red"


@pytest.fixture
def operation_store() -> InMemoryDataStore:
    return InMemoryDataStore()


@pytest.fixture
def tracker(operation_store: InMemoryDataStore) -> ChangeTracker:
    return ChangeTracker(operation_store)


def _item(**overrides) -> TodoItem:
    values = dict(id="item-1", name="buy milk", created_at=CREATED, updated_at=CREATED)
    values.update(overrides)
    return TodoItem(**values)


async def test_track_add_logs_every_field(tracker, operation_store) -> None:
    op = await tracker.track_add("todo_items", _item())

    assert op.op_type is OperationType.ADD
    assert op.table_name == "todo_items"
    assert op.item_id == "item-1"
    assert op.previous is None
    assert op.payload == {
        "name": "buy milk",
        "done": False,
        "priority": 0,
        "created_at": CREATED.isoformat(),
        "updated_at": CREATED.isoformat(),
    }
    assert await operation_store.get_operations() == [op]


async def test_track_modify_logs_only_changed_fields(tracker) -> None:
    before = _item()
    after = _item(name="buy oat milk", updated_at=UPDATED)

    op = await tracker.track_modify("todo_items", before, after)

    assert op.op_type is OperationType.MODIFY
    assert op.payload == {"name": "buy oat milk", "updated_at": UPDATED.isoformat()}
    assert op.previous == {"name": "buy milk", "updated_at": CREATED.isoformat()}


async def test_track_modify_without_changes_still_logs_one_operation(
    tracker, operation_store
) -> None:
    op = await tracker.track_modify("todo_items", _item(), _item())

    assert op.payload == {}
    assert op.previous == {}
    assert len(await operation_store.get_operations()) == 1


async def test_track_delete_has_no_payload(tracker) -> None:
    op = await tracker.track_delete("todo_items", _item())

    assert op.op_type is OperationType.DELETE
    assert op.item_id == "item-1"
    assert op.payload == {}


async def test_payload_values_are_json_compatible(tracker) -> None:
    item = _item()
    item.name = Color.RED  # type: ignore[assignment]

    op = await tracker.track_add("todo_items", item)

    assert op.payload["name"] == "red"


async def test_each_call_creates_a_distinct_operation(tracker, operation_store) -> None:
    item = _item()

    await tracker.track_add("todo_items", item)
    await tracker.track_add("todo_items", item)

    ops = await operation_store.get_operations()
    assert len(ops) == 2
    assert ops[0].id != ops[1].id


async def test_rejected_log_write_raises_tracking_error() -> None:
    store = AsyncMock(spec=OperationStore)
    store.add_operations.return_value = False
    tracker = ChangeTracker(store)

    with pytest.raises(TrackingError, match="Could not log add operation"):
        await tracker.track_add("todo_items", _item())


async def test_log_store_exceptions_propagate_unchanged() -> None:
    store = AsyncMock(spec=OperationStore)
    store.add_operations.side_effect = OSError("disk full")
    tracker = ChangeTracker(store)

    with pytest.raises(OSError, match="disk full"):
        await tracker.track_delete("todo_items", _item())


async def test_tracking_requires_an_id(tracker) -> None:
    with pytest.raises(TrackingError, match="without id"):
        await tracker.track_add("todo_items", _item(id=None))
