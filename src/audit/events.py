"""Audit entry model.

Values are stored JSON-encoded so that dates, numbers, enums and None
all round-trip through a single text column.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utc_now() -> datetime:
    """Current UTC time without tzinfo, matching what the database returns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_timestamp(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def encode_value(value: Any) -> str:
    """JSON-encode a field value for storage."""
    if isinstance(value, Enum):
        value = value.value
    return json.dumps(value, default=str)


def decode_value(raw: Optional[str]) -> Any:
    """Inverse of encode_value. Dates come back as ISO strings.

    Text that is not valid JSON (rows written by hand) is returned as-is.
    """
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


@dataclass
class AuditEntry:
    """One changed field of one accepted edit."""

    record_id: int
    field_name: str
    old_value: Any = None
    new_value: Any = None
    timestamp: datetime = field(default_factory=utc_now)
    entry_id: Optional[int] = None

    @classmethod
    def from_row(cls, row: Any) -> "AuditEntry":
        """Convert a TransactionAudit ORM row, decoding stored values."""
        return cls(
            entry_id=row.id,
            record_id=row.record_id,
            field_name=row.field_name,
            old_value=decode_value(row.old_value),
            new_value=decode_value(row.new_value),
            timestamp=row.modified_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize entry to dictionary."""
        return {
            "entry_id": self.entry_id,
            "record_id": self.record_id,
            "timestamp": self.timestamp.isoformat(),
            "field_name": self.field_name,
            "old_value": self.old_value,
            "new_value": self.new_value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEntry":
        """Deserialize entry from dictionary."""
        return cls(
            entry_id=data.get("entry_id"),
            record_id=data["record_id"],
            field_name=data["field_name"],
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )
