from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, AsyncContextManager, Optional, Protocol, TypeVar, runtime_checkable

from ..models import Operation

T = TypeVar("T")


class RecordStore(Protocol):
    """
    Durable storage for domain records.

    Writes report failure by returning False rather than raising: inserting an
    id that already exists, or updating/deleting one that does not. The client
    passes the resolved table name, so stores never inspect record types to
    find their storage.
    """

    async def insert(self, table: str, record: Any) -> bool:
        """Insert a new record."""
        ...

    async def update(self, table: str, record: Any) -> bool:
        """Replace the stored record with the same id."""
        ...

    async def delete(self, table: str, record: Any) -> bool:
        """Delete the stored record with the same id."""
        ...

    async def find_by_id(self, table: str, record_type: type[T], id: str) -> Optional[T]:
        """Return a copy of the stored record, or None."""
        ...

    async def find_by(
        self,
        table: str,
        record_type: type[T],
        predicate: Callable[[T], bool],
    ) -> list[T]:
        """Return copies of the stored records matching predicate."""
        ...

    async def all(self, table: str, record_type: type[T]) -> list[T]:
        """Return copies of every stored record in the table."""
        ...


class OperationStore(Protocol):
    """
    Durable, ordered log of captured operations.

    Empty or None input to add/delete is a successful no-op. get_operations()
    returns a prefix of the log in insertion order, since the log is consumed
    front to back.
    """

    async def add_operations(self, operations: Optional[Iterable[Operation]]) -> bool:
        ...

    async def delete_operations(self, operations: Optional[Iterable[Operation]]) -> bool:
        ...

    async def get_operations(self, limit: Optional[int] = None) -> list[Operation]:
        ...


@runtime_checkable
class TransactionalStore(Protocol):
    """
    A store able to group several writes into one atomic unit.

    Inside ``async with store.transaction():`` every call the current task
    makes on the store joins the same transaction; it commits on normal exit
    and rolls back if the block raises.
    """

    def transaction(self) -> AsyncContextManager[Any]:
        ...


@runtime_checkable
class TableProvisioner(Protocol):
    """A store that has to create storage before a table can be used."""

    async def ensure_table(self, table: str) -> None:
        ...


def check_limit(limit: Optional[int]) -> None:
    if limit is not None and limit < 0:
        raise ValueError("limit must be >= 0 or None")
