"""Field-level audit trail for ledger edits."""

from .config import (
    AUDIT_EPSILON,
    NUMERIC_FIELDS,
    TRACKED_FIELDS,
    AuditConfig,
)
from .events import AuditEntry, decode_value, encode_value
from .query import AuditQuery
from .recorder import AuditLogger

__all__ = [
    # Config
    "AUDIT_EPSILON",
    "NUMERIC_FIELDS",
    "TRACKED_FIELDS",
    "AuditConfig",
    # Entries
    "AuditEntry",
    "decode_value",
    "encode_value",
    # Core
    "AuditLogger",
    "AuditQuery",
]
