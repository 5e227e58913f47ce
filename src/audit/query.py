"""Read-side queries over the audit log."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.db.models import TransactionAudit

from .events import AuditEntry

logger = logging.getLogger(__name__)


class AuditQuery:
    """Pure reads of the audit trail.

    Repeated calls with no intervening edit return identical sequences:
    entries are ordered by timestamp, ties broken by insertion id.
    """

    def __init__(self, store: Any) -> None:
        """Initialize against a ledger store.

        Args:
            store: LedgerStore providing ``run_in_transaction``.
        """
        self._store = store

    def _read(self, session: Optional[Session], statement) -> List[TransactionAudit]:
        if session is not None:
            return list(session.execute(statement).scalars().all())
        return self._store.query(statement)

    def get_history(self, record_id: int, session: Optional[Session] = None) -> List[AuditEntry]:
        """All entries for a record in chronological order."""
        statement = (
            select(TransactionAudit)
            .where(TransactionAudit.record_id == record_id)
            .order_by(TransactionAudit.modified_at.asc(), TransactionAudit.id.asc())
        )
        return [AuditEntry.from_row(row) for row in self._read(session, statement)]

    def get_field_history(
        self,
        record_id: int,
        field_name: str,
        session: Optional[Session] = None,
    ) -> List[AuditEntry]:
        """Entries for a single field of a record, oldest first."""
        return [
            entry for entry in self.get_history(record_id, session=session)
            if entry.field_name == field_name
        ]

    def get_edit_summary(self, record_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
        """Summarize how often and how a record has been edited.

        Entries sharing a timestamp belong to the same edit, so
        ``edit_count`` counts distinct timestamps.
        """
        history = self.get_history(record_id, session=session)
        if not history:
            return {
                "has_been_edited": False,
                "edit_count": 0,
                "last_modified": None,
                "fields_changed": [],
                "total_changes": 0,
            }

        timestamps: set[datetime] = {entry.timestamp for entry in history}
        fields_changed: List[str] = []
        for entry in history:
            if entry.field_name not in fields_changed:
                fields_changed.append(entry.field_name)

        return {
            "has_been_edited": True,
            "edit_count": len(timestamps),
            "last_modified": history[-1].timestamp,
            "fields_changed": fields_changed,
            "total_changes": len(history),
        }
