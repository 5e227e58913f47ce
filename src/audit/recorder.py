"""Field-level audit recorder for accepted edits."""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Tuple, TypeVar

from sqlalchemy import delete
from sqlalchemy.orm import Session

from src.db.models import LedgerTransaction, TransactionAudit
from src.ledger_errors.exceptions import InvalidArgument

from .config import AuditConfig
from .events import AuditEntry, decode_value, encode_value, normalize_timestamp, utc_now
from .query import AuditQuery

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _as_values(record: Any) -> Mapping[str, Any]:
    """Accept a mapping or anything exposing ``audit_values()``."""
    if isinstance(record, Mapping):
        return record
    return record.audit_values()


def _comparable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


class AuditLogger:
    """Writes one audit row per changed field of an accepted edit.

    Rows are append-only. When a session is supplied the writes join the
    caller's transaction so the audit trail commits or rolls back with the
    edit itself; otherwise each call runs in its own transaction.
    """

    def __init__(self, store: Any, config: Optional[AuditConfig] = None) -> None:
        self._store = store
        self._config = config or AuditConfig()
        self._query = AuditQuery(store)

    @property
    def config(self) -> AuditConfig:
        return self._config

    def _run(self, session: Optional[Session], fn: Callable[[Session], T]) -> T:
        if session is not None:
            return fn(session)
        return self._store.run_in_transaction(fn)

    def values_equal(self, field_name: str, old: Any, new: Any) -> bool:
        """Compare two field values, numerics within epsilon."""
        if old is None and new is None:
            return True
        if old is None or new is None:
            return False
        if self._config.is_numeric(field_name):
            try:
                return abs(float(old) - float(new)) <= self._config.epsilon
            except (TypeError, ValueError):
                pass
        old, new = _comparable(old), _comparable(new)
        if old == new:
            return True
        return str(old) == str(new)

    def detect_changes(self, before: Any, after: Any) -> List[Tuple[str, Any, Any]]:
        """(field, old, new) for every tracked field that differs."""
        before_values = _as_values(before)
        after_values = _as_values(after)
        changes = []
        for field_name in self._config.tracked_fields:
            old = before_values.get(field_name)
            new = after_values.get(field_name)
            if not self.values_equal(field_name, old, new):
                changes.append((field_name, old, new))
        return changes

    def log_edit(
        self,
        record_id: int,
        before: Any,
        after: Any,
        timestamp: Optional[datetime] = None,
        session: Optional[Session] = None,
    ) -> List[AuditEntry]:
        """Record the differences between ``before`` and ``after``.

        Args:
            record_id: Id of the edited ledger record.
            before: Field values prior to the edit.
            after: Field values after the edit.
            timestamp: Time of the edit (defaults to now, stored as UTC).
            session: Join this transaction instead of opening one.

        Returns:
            The entries written, empty when nothing differed.
        """
        if not self._config.enabled:
            logger.debug("Audit logging disabled, skipping record %s", record_id)
            return []

        changes = self.detect_changes(before, after)
        if not changes:
            return []

        modified_at = normalize_timestamp(timestamp) if timestamp else utc_now()
        rows = [
            TransactionAudit(
                record_id=record_id,
                modified_at=modified_at,
                field_name=field_name,
                old_value=encode_value(old),
                new_value=encode_value(new),
            )
            for field_name, old, new in changes
        ]

        def _write(s: Session) -> List[AuditEntry]:
            s.add_all(rows)
            s.flush()
            return [
                AuditEntry(
                    entry_id=row.id,
                    record_id=record_id,
                    field_name=row.field_name,
                    old_value=decode_value(row.old_value),
                    new_value=decode_value(row.new_value),
                    timestamp=modified_at,
                )
                for row in rows
            ]

        entries = self._run(session, _write)
        logger.info(
            "Audited edit of record %s: %s",
            record_id,
            ", ".join(e.field_name for e in entries),
            extra={"record_id": record_id},
        )
        return entries

    def get_history(self, record_id: int, session: Optional[Session] = None) -> List[AuditEntry]:
        """All entries for a record, oldest first."""
        return self._query.get_history(record_id, session=session)

    def get_edit_summary(self, record_id: int, session: Optional[Session] = None) -> dict:
        return self._query.get_edit_summary(record_id, session=session)

    def delete_history(self, record_id: int, session: Optional[Session] = None) -> int:
        """Remove a record's audit trail once the record itself is gone.

        Returns:
            Number of entries deleted.

        Raises:
            InvalidArgument: the record still exists.
        """
        def _delete(s: Session) -> int:
            if s.get(LedgerTransaction, record_id) is not None:
                raise InvalidArgument(
                    f"Record {record_id} still exists; its audit history cannot be deleted",
                    field="record_id",
                )
            result = s.execute(
                delete(TransactionAudit).where(TransactionAudit.record_id == record_id)
            )
            return result.rowcount or 0

        deleted = self._run(session, _delete)
        logger.info("Deleted %d audit entries for record %s", deleted, record_id)
        return deleted
