from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from ..config import StoreConfig
from ..errors import MissingIdentifierError
from ..helpers import (
    _validate_identifier,
    dumps,
    format_timestamp,
    loads,
    parse_timestamp,
)
from ..models import AUDIT_FIELDS, Operation, OperationType, record_fields
from .base import check_limit
from .metrics import observe_operation_log_write, observe_store_write
from .session import AsyncDbSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

# store id -> session of the transaction the current task has open on that store
_open_sessions: ContextVar[Mapping[int, AsyncDbSession]] = ContextVar(
    "synclog_open_sessions", default={}
)


def make_engine(config: StoreConfig) -> AsyncEngine:
    """
    Create the AsyncEngine described by config.

    In-memory SQLite databases live as long as their connection, so they get a
    single shared connection (StaticPool).
    """
    if config.is_memory:
        return create_async_engine(config.url, echo=config.echo, poolclass=StaticPool)
    return create_async_engine(config.url, echo=config.echo)


class SqliteDataStore:
    """
    Record store and operation log in one SQLite database.

    Each record table holds the audit columns plus a JSON ``data`` column with
    the remaining fields; record types must accept their fields as keyword
    arguments. Operations are kept in a single table ordered by an
    autoincrement sequence.

    Usage:
        store = SqliteDataStore(make_engine(StoreConfig()))
        await store.initialize(["todo_items"])

        async with store.transaction():
            await store.insert("todo_items", item)
            await store.add_operations([op])
    """

    def __init__(self, engine: AsyncEngine, config: StoreConfig | None = None) -> None:
        self.engine = engine
        self.config = config or StoreConfig()
        self.operations_table = _validate_identifier(
            self.config.operations_table, "operations_table"
        )
        self._tables: set[str] = set()
        # one shared connection (in-memory SQLite): transactions of different
        # tasks would interleave on it, so only one may be open at a time
        self._lock: asyncio.Lock | None = (
            asyncio.Lock() if isinstance(engine.sync_engine.pool, StaticPool) else None
        )

    @classmethod
    def from_config(cls, config: StoreConfig) -> "SqliteDataStore":
        return cls(make_engine(config), config)

    async def initialize(self, tables: Iterable[str] = ()) -> None:
        """Create the operation table and the given record tables if missing."""
        async with self._session() as session:
            await session.execute(
                f"CREATE TABLE IF NOT EXISTS {self.operations_table} ("
                "seq INTEGER PRIMARY KEY AUTOINCREMENT, "
                "id TEXT NOT NULL UNIQUE, "
                "table_name TEXT NOT NULL, "
                "item_id TEXT NOT NULL, "
                "op_type TEXT NOT NULL, "
                "payload TEXT NOT NULL, "
                "previous TEXT NULL, "
                "created_at TEXT NOT NULL)"
            )
        for table in tables:
            await self.ensure_table(table)

    async def ensure_table(self, table: str) -> None:
        table = _validate_identifier(table, "table")
        if table in self._tables:
            return
        async with self._session() as session:
            await session.execute(
                f"CREATE TABLE IF NOT EXISTS {table} ("
                "id TEXT PRIMARY KEY, "
                "created_at TEXT NULL, "
                "updated_at TEXT NULL, "
                "data TEXT NOT NULL)"
            )
        self._tables.add(table)
        logger.info("Ensured record table %s", table)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncDbSession]:
        """
        Run every store call made by the current task inside one transaction.

        Nested calls join the outer transaction. Commits on normal exit, rolls
        back if the block raises.
        """
        current = _open_sessions.get().get(id(self))
        if current is not None:
            yield current
            return

        async with self._exclusive(), AsyncDbSession(self.engine) as session:
            token = _open_sessions.set({**_open_sessions.get(), id(self): session})
            try:
                yield session
            finally:
                _open_sessions.reset(token)

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncDbSession]:
        current = _open_sessions.get().get(id(self))
        if current is not None:
            yield current
            return

        async with self._exclusive(), AsyncDbSession(self.engine) as session:
            yield session

    @asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        if self._lock is None:
            yield
            return
        async with self._lock:
            yield

    # Records

    async def insert(self, table: str, record: Any) -> bool:
        """
        Insert a record. A duplicate id is rejected (returns False), not raised.
        """
        table = _validate_identifier(table, "table")
        params = self._encode_record(record)
        start_time = time.monotonic()
        status = "success"
        try:
            async with self._session() as session:
                try:
                    await session.execute(
                        f"INSERT INTO {table} (id, created_at, updated_at, data) "
                        "VALUES (:id, :created_at, :updated_at, :data)",
                        params,
                    )
                except IntegrityError as exc:
                    status = "rejected"
                    logger.info(
                        "Insert into %s rejected for id=%s: %s", table, params["id"], exc.orig
                    )
                    return False
            return True
        except Exception:
            status = "error"
            raise
        finally:
            observe_store_write(table, "insert", status, time.monotonic() - start_time)

    async def update(self, table: str, record: Any) -> bool:
        table = _validate_identifier(table, "table")
        params = self._encode_record(record)
        return await self._write(
            table,
            "update",
            f"UPDATE {table} SET created_at = :created_at, updated_at = :updated_at, "
            "data = :data WHERE id = :id",
            params,
        )

    async def delete(self, table: str, record: Any) -> bool:
        table = _validate_identifier(table, "table")
        params = self._encode_record(record)
        return await self._write(
            table,
            "delete",
            f"DELETE FROM {table} WHERE id = :id",
            {"id": params["id"]},
        )

    async def find_by_id(self, table: str, record_type: type[T], id: str) -> Optional[T]:
        table = _validate_identifier(table, "table")
        async with self._session() as session:
            row = await session.fetch_one(
                f"SELECT id, created_at, updated_at, data FROM {table} WHERE id = :id",
                {"id": id},
            )
        if row is None:
            return None
        return self._decode_record(record_type, row)

    async def find_by(
        self,
        table: str,
        record_type: type[T],
        predicate: Callable[[T], bool],
    ) -> list[T]:
        return [r for r in await self.all(table, record_type) if predicate(r)]

    async def all(self, table: str, record_type: type[T]) -> list[T]:
        table = _validate_identifier(table, "table")
        async with self._session() as session:
            rows = await session.fetch_all(
                f"SELECT id, created_at, updated_at, data FROM {table}"
            )
        return [self._decode_record(record_type, row) for row in rows]

    async def _write(self, table: str, op_type: str, sql: str, params: dict[str, Any]) -> bool:
        start_time = time.monotonic()
        status = "success"
        try:
            async with self._session() as session:
                rowcount = await session.execute(sql, params)
            if rowcount != 1:
                status = "rejected"
                logger.info("%s on %s matched no row for id=%s", op_type, table, params["id"])
                return False
            return True
        except Exception:
            status = "error"
            raise
        finally:
            observe_store_write(table, op_type, status, time.monotonic() - start_time)

    @staticmethod
    def _encode_record(record: Any) -> dict[str, Any]:
        values = record_fields(record)
        if not values.get("id"):
            raise MissingIdentifierError("Cannot store item without id")
        data = {k: v for k, v in values.items() if k not in AUDIT_FIELDS}
        return {
            "id": values["id"],
            "created_at": format_timestamp(values.get("created_at")),
            "updated_at": format_timestamp(values.get("updated_at")),
            "data": dumps(data),
        }

    @staticmethod
    def _decode_record(record_type: type[T], row: dict[str, Any]) -> T:
        values = loads(row["data"]) or {}
        return record_type(
            id=row["id"],
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
            **values,
        )

    # Operations

    async def add_operations(self, operations: Optional[Iterable[Operation]]) -> bool:
        ops = list(operations or ())
        if not ops:
            return True

        try:
            async with self._session() as session:
                for op in ops:
                    await session.execute(
                        f"INSERT INTO {self.operations_table} "
                        "(id, table_name, item_id, op_type, payload, previous, created_at) "
                        "VALUES (:id, :table_name, :item_id, :op_type, :payload, :previous, :created_at)",
                        {
                            "id": op.id,
                            "table_name": op.table_name,
                            "item_id": op.item_id,
                            "op_type": op.op_type.value,
                            "payload": dumps(op.payload),
                            "previous": dumps(op.previous),
                            "created_at": format_timestamp(op.created_at),
                        },
                    )
        except IntegrityError as exc:
            logger.warning("Rejected %d operation(s): %s", len(ops), exc.orig)
            observe_operation_log_write("add", "rejected", len(ops))
            return False

        observe_operation_log_write("add", "success", len(ops))
        return True

    async def delete_operations(self, operations: Optional[Iterable[Operation]]) -> bool:
        ops = list(operations or ())
        if not ops:
            return True

        async with self._session() as session:
            for op in ops:
                await session.execute(
                    f"DELETE FROM {self.operations_table} WHERE id = :id",
                    {"id": op.id},
                )

        observe_operation_log_write("delete", "success", len(ops))
        return True

    async def get_operations(self, limit: Optional[int] = None) -> list[Operation]:
        check_limit(limit)
        sql = (
            "SELECT id, table_name, item_id, op_type, payload, previous, created_at "
            f"FROM {self.operations_table} ORDER BY seq"
        )
        params: dict[str, Any] = {}
        if limit is not None:
            sql += " LIMIT :limit"
            params["limit"] = limit

        async with self._session() as session:
            rows = await session.fetch_all(sql, params)

        return [
            Operation(
                id=row["id"],
                table_name=row["table_name"],
                item_id=row["item_id"],
                op_type=OperationType(row["op_type"]),
                payload=loads(row["payload"]) or {},
                previous=loads(row["previous"]),
                created_at=parse_timestamp(row["created_at"]),
            )
            for row in rows
        ]
