"""Ledger Context.

An explicit handle carrying everything a ledger operation needs: the
storage collaborator, tax and audit configuration, and the owning
account. Independent contexts (one per test, one per account) coexist;
no ledger state is process-global. Only the log handler installed by
from_settings is shared by every context in the process.
"""

from dataclasses import dataclass, field
from typing import Optional

from src.audit.config import AuditConfig
from src.capgains.config import TaxConfig
from src.capgains.store import LedgerStore
from src.logging_config.config import LoggingConfig
from src.logging_config.context import LedgerLogContext, generate_ledger_id
from src.logging_config.setup import configure_logging


@dataclass
class LedgerContext:
    """Store, configuration and identity of one ledger."""
    store: LedgerStore
    config: TaxConfig = field(default_factory=TaxConfig)
    audit_config: AuditConfig = field(default_factory=AuditConfig)
    account_id: str = "default"
    ledger_id: str = field(default_factory=generate_ledger_id)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[object] = None,
        store: Optional[LedgerStore] = None,
        configure_logs: bool = True,
    ) -> "LedgerContext":
        """Build a context from application settings.

        Without an explicit store, one is created for ``settings.database_url``
        and its schema is created if missing. Unless ``configure_logs`` is
        false, the ledger log handler is installed first with the level,
        format and slow threshold from ``settings``.
        """
        if settings is None:
            from src.settings import get_settings
            settings = get_settings()
        if configure_logs:
            configure_logging(LoggingConfig.from_settings(settings))
        return cls(
            store=store or LedgerStore.from_url(settings.database_url),
            config=TaxConfig.from_settings(settings),
            audit_config=AuditConfig.from_settings(settings),
            account_id=settings.account_id,
        )

    @classmethod
    def in_memory(cls, **kwargs) -> "LedgerContext":
        """A throwaway ledger backed by in-memory SQLite."""
        return cls(store=LedgerStore.from_url("sqlite://"), **kwargs)

    def log_context(self, operation: str = "") -> LedgerLogContext:
        """Bind this ledger's identity to log lines emitted inside the block."""
        return LedgerLogContext(
            ledger_id=self.ledger_id,
            account_id=self.account_id,
            operation=operation,
        )
