from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .errors import TrackingError
from .helpers import to_jsonable
from .models import Operation, OperationType, Record, record_fields
from .store.base import OperationStore
from .store.metrics import observe_operation_tracked

logger = logging.getLogger(__name__)


class ChangeTracker:
    """
    Turns committed record mutations into operations in the operation log.

    Each track_* call persists exactly one Operation and returns it. A log
    store that reports failure raises TrackingError; anything the log store
    raises propagates unchanged. The mutation has already been committed by
    then, so a lost log entry must never pass silently.
    """

    def __init__(self, operation_store: OperationStore) -> None:
        self.operation_store = operation_store

    async def track_add(self, table_name: str, record: Record) -> Operation:
        values = _snapshot(record)
        op = Operation(
            table_name=table_name,
            op_type=OperationType.ADD,
            item_id=_item_id(record),
            payload={k: v for k, v in values.items() if k != "id"},
        )
        return await self._persist(op)

    async def track_modify(self, table_name: str, previous: Record, current: Record) -> Operation:
        """
        Log an update. Only fields whose value changed are recorded: payload
        holds their new values, previous their old ones.
        """
        old_values = _snapshot(previous)
        new_values = _snapshot(current)
        changed = [
            k for k in new_values
            if k != "id" and old_values.get(k) != new_values[k]
        ]
        op = Operation(
            table_name=table_name,
            op_type=OperationType.MODIFY,
            item_id=_item_id(current),
            payload={k: new_values[k] for k in changed},
            previous={k: old_values.get(k) for k in changed},
        )
        return await self._persist(op)

    async def track_delete(self, table_name: str, record: Record) -> Operation:
        op = Operation(
            table_name=table_name,
            op_type=OperationType.DELETE,
            item_id=_item_id(record),
        )
        return await self._persist(op)

    async def _persist(self, op: Operation) -> Operation:
        try:
            ok = await self.operation_store.add_operations([op])
        except Exception:
            observe_operation_tracked(op.table_name, op.op_type.value, "error")
            raise

        if not ok:
            observe_operation_tracked(op.table_name, op.op_type.value, "error")
            raise TrackingError(
                f"Could not log {op.op_type.value} operation for {op.table_name} id={op.item_id}"
            )

        observe_operation_tracked(op.table_name, op.op_type.value, "success")
        logger.debug(
            "Tracked %s on %s id=%s (operation %s)",
            op.op_type.value,
            op.table_name,
            op.item_id,
            op.id,
        )
        return op


def _snapshot(record: Any) -> Mapping[str, Any]:
    return {k: to_jsonable(v) for k, v in record_fields(record).items()}


def _item_id(record: Any) -> str:
    item_id: Optional[str] = getattr(record, "id", None)
    if not item_id:
        raise TrackingError("Cannot track an item without id")
    return item_id
