from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import ConfigurationError
from .helpers import _validate_identifier

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
DEFAULT_OPERATIONS_TABLE = "sync_operations"


@dataclass
class StoreConfig:
    url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    operations_table: str = DEFAULT_OPERATIONS_TABLE

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.url:
            raise ConfigurationError("url must be a non-empty SQLAlchemy database URL")
        try:
            _validate_identifier(self.operations_table, "operations_table")
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(str(exc)) from exc

    @property
    def is_memory(self) -> bool:
        return ":memory:" in self.url or self.url in ("sqlite://", "sqlite+aiosqlite://")

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """
        Build a config from SYNCLOG_DATABASE_URL, SYNCLOG_DATABASE_ECHO and
        SYNCLOG_OPERATIONS_TABLE, falling back to the defaults.
        """
        echo = os.environ.get("SYNCLOG_DATABASE_ECHO", "")
        return cls(
            url=os.environ.get("SYNCLOG_DATABASE_URL") or DEFAULT_DATABASE_URL,
            echo=echo.strip().lower() in ("1", "true", "yes", "on"),
            operations_table=os.environ.get("SYNCLOG_OPERATIONS_TABLE")
            or DEFAULT_OPERATIONS_TABLE,
        )


@dataclass(frozen=True)
class WriteOptions:
    """
    Per-call switches for SyncClient.save() and SyncClient.delete().

    track_changes=False performs the store mutation only: no timestamps are
    stamped and no operation is logged.
    """
    track_changes: bool = True


DEFAULT_WRITE_OPTIONS = WriteOptions()
UNTRACKED = WriteOptions(track_changes=False)
