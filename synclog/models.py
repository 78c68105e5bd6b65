from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

AUDIT_FIELDS = ("id", "created_at", "updated_at")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@runtime_checkable
class Record(Protocol):
    """
    Anything the client can persist: an identifier plus audit timestamps.

    An empty or missing id means the record has never been saved.
    """
    id: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


@dataclass(kw_only=True)
class SyncRecord:
    """
    Convenience base for domain records.

    Subclasses declare their own fields and may set ``__table_name__`` to
    choose the default table name used at registration.
    """
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def record_fields(record: Any) -> dict[str, Any]:
    """
    Return the record's field values, keyed by field name.

    Dataclasses contribute their declared fields (shallow, nested records are
    not expanded); other objects contribute their instance ``__dict__``
    without private attributes.
    """
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return {f.name: getattr(record, f.name) for f in dataclasses.fields(record)}
    return {k: v for k, v in vars(record).items() if not k.startswith("_")}


class OperationType(str, Enum):
    ADD = "add"
    MODIFY = "modify"
    DELETE = "delete"


@dataclass(frozen=True)
class Operation:
    """
    One captured mutation of one record, waiting to be synchronized.

    payload maps field name -> new value. For MODIFY it holds only the changed
    fields and previous holds their prior values; DELETE carries no payload.
    """
    table_name: str
    op_type: OperationType
    item_id: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    previous: Optional[Mapping[str, Any]] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)
