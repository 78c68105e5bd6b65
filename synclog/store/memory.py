from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable
from typing import Any, Optional, TypeVar

from ..errors import MissingIdentifierError
from ..models import Operation
from .base import check_limit
from .metrics import observe_operation_log_write, observe_store_write

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InMemoryDataStore:
    """
    Record store and operation log kept in process memory.

    Records are deep-copied on the way in and out, so callers never share
    state with the store. Nothing survives the process; intended for tests
    and ephemeral clients.
    """

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}
        self._operations: list[Operation] = []

    async def ensure_table(self, table: str) -> None:
        self._records.setdefault(table, {})

    async def insert(self, table: str, record: Any) -> bool:
        rows = self._records.setdefault(table, {})
        key = self._key(record)
        if key in rows:
            logger.info("Insert into %s rejected for existing id=%s", table, key)
            observe_store_write(table, "insert", "rejected", 0.0)
            return False
        rows[key] = copy.deepcopy(record)
        observe_store_write(table, "insert", "success", 0.0)
        return True

    async def update(self, table: str, record: Any) -> bool:
        rows = self._records.get(table, {})
        key = self._key(record)
        if key not in rows:
            observe_store_write(table, "update", "rejected", 0.0)
            return False
        rows[key] = copy.deepcopy(record)
        observe_store_write(table, "update", "success", 0.0)
        return True

    async def delete(self, table: str, record: Any) -> bool:
        rows = self._records.get(table, {})
        if rows.pop(self._key(record), None) is None:
            observe_store_write(table, "delete", "rejected", 0.0)
            return False
        observe_store_write(table, "delete", "success", 0.0)
        return True

    async def find_by_id(self, table: str, record_type: type[T], id: str) -> Optional[T]:
        record = self._records.get(table, {}).get(id)
        return copy.deepcopy(record) if record is not None else None

    async def find_by(
        self,
        table: str,
        record_type: type[T],
        predicate: Callable[[T], bool],
    ) -> list[T]:
        return [r for r in await self.all(table, record_type) if predicate(r)]

    async def all(self, table: str, record_type: type[T]) -> list[T]:
        return [copy.deepcopy(r) for r in self._records.get(table, {}).values()]

    async def add_operations(self, operations: Optional[Iterable[Operation]]) -> bool:
        ops = list(operations or ())
        self._operations.extend(ops)
        observe_operation_log_write("add", "success", len(ops))
        return True

    async def delete_operations(self, operations: Optional[Iterable[Operation]]) -> bool:
        ids = {op.id for op in operations or ()}
        if not ids:
            return True
        before = len(self._operations)
        self._operations = [op for op in self._operations if op.id not in ids]
        observe_operation_log_write("delete", "success", before - len(self._operations))
        return True

    async def get_operations(self, limit: Optional[int] = None) -> list[Operation]:
        check_limit(limit)
        if limit is None:
            return list(self._operations)
        return self._operations[:limit]

    @staticmethod
    def _key(record: Any) -> str:
        key = getattr(record, "id", None)
        if not key:
            raise MissingIdentifierError("Cannot store item without id")
        return key
