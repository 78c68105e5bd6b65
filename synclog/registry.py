from __future__ import annotations

import logging
import threading
from typing import Optional

from .errors import ConfigurationError, TableNotRegisteredError
from .helpers import _validate_identifier

logger = logging.getLogger(__name__)


def default_table_name(record_type: type) -> str:
    return getattr(record_type, "__table_name__", None) or record_type.__name__


class TableRegistry:
    """
    Binding from record type to table name.

    Registrations are made during setup and only read afterwards; resolve()
    never mutates and is safe to call from concurrent tasks.
    """

    def __init__(self) -> None:
        self._tables: dict[type, str] = {}
        self._lock = threading.Lock()

    def register(self, record_type: type, table_name: Optional[str] = None) -> str:
        """
        Register record_type under table_name (defaults to the type's
        ``__table_name__`` or class name) and return the name.

        Raises:
            ConfigurationError: If the name is not a valid identifier or the
                type is already registered under a different name
        """
        name = table_name or default_table_name(record_type)
        try:
            _validate_identifier(name, "table")
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(str(exc)) from exc

        with self._lock:
            existing = self._tables.get(record_type)
            if existing is not None and existing != name:
                raise ConfigurationError(
                    f"{record_type.__name__} is already registered as table {existing!r}"
                )
            self._tables[record_type] = name

        logger.debug("Registered %s as table %s", record_type.__name__, name)
        return name

    def resolve(self, record_type: type) -> Optional[str]:
        return self._tables.get(record_type)

    def require(self, record_type: type) -> str:
        name = self.resolve(record_type)
        if name is None:
            raise TableNotRegisteredError(record_type)
        return name

    def tables(self) -> list[str]:
        return sorted(set(self._tables.values()))

    def __contains__(self, record_type: object) -> bool:
        return record_type in self._tables
