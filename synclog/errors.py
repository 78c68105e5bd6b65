class SynclogError(Exception):
    """Base exception for synclog errors."""


class ConfigurationError(SynclogError):
    """The client or a store was set up incorrectly."""


class TableNotRegisteredError(ConfigurationError):
    """A record type was used without a table registration."""

    def __init__(self, record_type: type) -> None:
        self.record_type = record_type
        super().__init__(
            f"Table {record_type.__name__} is not registered in the sync client"
        )


class MissingIdentifierError(SynclogError):
    """A record needs an id for the requested operation."""


class StoreOperationFailedError(SynclogError):
    """The record store rejected an insert, update or delete."""


class TrackingError(SynclogError):
    """An operation could not be written to the operation log."""
