from .client import SyncClient
from .config import StoreConfig, WriteOptions
from .errors import (
    ConfigurationError,
    MissingIdentifierError,
    StoreOperationFailedError,
    SynclogError,
    TableNotRegisteredError,
    TrackingError,
)
from .models import Operation, OperationType, Record, SyncRecord
from .registry import TableRegistry
from .store import InMemoryDataStore, SqliteDataStore, make_engine
from .tracker import ChangeTracker

__all__ = [
    "SyncClient",
    "ChangeTracker",
    "TableRegistry",
    "StoreConfig",
    "WriteOptions",
    "Operation",
    "OperationType",
    "Record",
    "SyncRecord",
    "InMemoryDataStore",
    "SqliteDataStore",
    "make_engine",
    "SynclogError",
    "ConfigurationError",
    "TableNotRegisteredError",
    "MissingIdentifierError",
    "StoreOperationFailedError",
    "TrackingError",
]
