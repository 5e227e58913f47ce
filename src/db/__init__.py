"""Database package for the lot ledger."""

from src.db.base import Base
from src.db.engine import (
    create_ledger_engine,
    get_sync_engine,
    get_sync_session_factory,
    SyncSessionLocal,
)
from src.db.models import (
    GainBucket,
    LedgerTransaction,
    RealizedGainRecord,
    TransactionAudit,
    TransactionType,
)

__all__ = [
    "Base",
    "create_ledger_engine",
    "get_sync_engine",
    "get_sync_session_factory",
    "SyncSessionLocal",
    "GainBucket",
    "LedgerTransaction",
    "RealizedGainRecord",
    "TransactionAudit",
    "TransactionType",
]
