from .base import OperationStore, RecordStore, TableProvisioner, TransactionalStore
from .memory import InMemoryDataStore
from .session import AsyncDbSession
from .sqlite import SqliteDataStore, make_engine

__all__ = [
    "RecordStore",
    "OperationStore",
    "TransactionalStore",
    "TableProvisioner",
    "AsyncDbSession",
    "InMemoryDataStore",
    "SqliteDataStore",
    "make_engine",
]
