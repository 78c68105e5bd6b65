from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional, TypeVar

from .config import DEFAULT_WRITE_OPTIONS, WriteOptions
from .errors import MissingIdentifierError, StoreOperationFailedError
from .models import Record, utcnow
from .registry import TableRegistry
from .store.base import OperationStore, RecordStore, TableProvisioner, TransactionalStore
from .tracker import ChangeTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncClient:
    """
    Entry point for reading and writing records with change tracking.

    Every tracked save or delete is persisted in the record store and then
    logged as exactly one Operation for a later synchronization pass. Writes
    that the store rejects raise StoreOperationFailedError and log nothing.

    When the record store is also the operation store and supports
    transactions (SqliteDataStore), the record write and its operation are
    committed together. Otherwise they are two sequential writes, and a crash
    between them leaves a mutation without an operation.

    Usage:
        store = SqliteDataStore(make_engine(StoreConfig()))
        await store.initialize()
        client = SyncClient(TableRegistry(), store)
        await client.add_table(TodoItem)

        item = TodoItem(name="buy milk")
        await client.save(item)                                    # Add
        item.name = "buy oat milk"
        await client.save(item)                                    # Modify
        await client.delete(item, WriteOptions(track_changes=False))  # not logged
    """

    def __init__(
        self,
        registry: TableRegistry,
        data_store: RecordStore,
        operation_store: Optional[OperationStore] = None,
        *,
        change_tracker: Optional[ChangeTracker] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Args:
            registry: Table registrations for every record type used
            data_store: Record store that persists the records
            operation_store: Operation log; defaults to data_store
            change_tracker: Explicit tracker, overrides operation_store
            clock: Source of audit timestamps
        """
        self.registry = registry
        self.data_store = data_store
        if change_tracker is None:
            change_tracker = ChangeTracker(operation_store or data_store)
        self.change_tracker = change_tracker
        self._clock = clock
        self._atomic = (
            isinstance(data_store, TransactionalStore)
            and change_tracker.operation_store is data_store
        )

    async def add_table(self, record_type: type, table_name: Optional[str] = None) -> str:
        """Register record_type and create its storage if the store needs it."""
        name = self.registry.register(record_type, table_name)
        if isinstance(self.data_store, TableProvisioner):
            await self.data_store.ensure_table(name)
        return name

    async def save(self, record: Record, options: Optional[WriteOptions] = None) -> None:
        """
        Insert or update record.

        A record without id gets a new one and is inserted. A record with an id
        is updated if the store has it, inserted otherwise. With tracking on,
        created_at (insert only) and updated_at are stamped on the record and
        the change is logged.

        Raises:
            TableNotRegisteredError: If type(record) has no table registration
            StoreOperationFailedError: If the store rejects the write
            TrackingError: If the operation could not be logged
        """
        options = options or DEFAULT_WRITE_OPTIONS
        table = self.registry.require(type(record))

        previous = None
        if not record.id:
            record.id = str(uuid.uuid4())
        else:
            previous = await self.data_store.find_by_id(table, type(record), record.id)

        if previous is None:
            await self._insert(table, record, options)
        else:
            await self._update(table, previous, record, options)

    async def delete(self, record: Record, options: Optional[WriteOptions] = None) -> None:
        """
        Delete record from the store and, with tracking on, log the delete.

        Raises:
            TableNotRegisteredError: If type(record) has no table registration
            MissingIdentifierError: If record has no id
            StoreOperationFailedError: If the store rejects the delete
            TrackingError: If the operation could not be logged
        """
        options = options or DEFAULT_WRITE_OPTIONS
        table = self.registry.require(type(record))

        if not getattr(record, "id", None):
            raise MissingIdentifierError("Cannot delete item without id")

        async with self._unit_of_work(options):
            if not await self.data_store.delete(table, record):
                raise StoreOperationFailedError("Could not delete item")
            if options.track_changes:
                await self.change_tracker.track_delete(table, record)

        logger.debug("Deleted %s id=%s (tracked=%s)", table, record.id, options.track_changes)

    async def find_by(self, record_type: type[T], predicate: Callable[[T], bool]) -> list[T]:
        table = self.registry.require(record_type)
        return await self.data_store.find_by(table, record_type, predicate)

    async def get_all(self, record_type: type[T]) -> list[T]:
        table = self.registry.require(record_type)
        return await self.data_store.all(table, record_type)

    async def get_by_id(self, record_type: type[T], id: str) -> Optional[T]:
        table = self.registry.require(record_type)
        return await self.data_store.find_by_id(table, record_type, id)

    async def _insert(self, table: str, record: Record, options: WriteOptions) -> None:
        if options.track_changes:
            now = self._clock()
            record.created_at = now
            record.updated_at = now

        async with self._unit_of_work(options):
            if not await self.data_store.insert(table, record):
                raise StoreOperationFailedError("Could not insert item")
            if options.track_changes:
                await self.change_tracker.track_add(table, record)

        logger.debug("Inserted %s id=%s (tracked=%s)", table, record.id, options.track_changes)

    async def _update(
        self, table: str, previous: Record, record: Record, options: WriteOptions
    ) -> None:
        if options.track_changes:
            # created_at belongs to the first insert, whatever the caller sent
            record.created_at = previous.created_at
            record.updated_at = self._clock()

        async with self._unit_of_work(options):
            if not await self.data_store.update(table, record):
                raise StoreOperationFailedError("Could not update item")
            if options.track_changes:
                await self.change_tracker.track_modify(table, previous, record)

        logger.debug("Updated %s id=%s (tracked=%s)", table, record.id, options.track_changes)

    @asynccontextmanager
    async def _unit_of_work(self, options: WriteOptions) -> AsyncIterator[None]:
        if self._atomic and options.track_changes:
            async with self.data_store.transaction():
                yield
        else:
            yield
