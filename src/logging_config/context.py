"""Ledger Log Context.

Binds the ledger id, account id and the operation being performed to
every log entry emitted while a ledger operation runs, using contextvars
so nested and concurrent ledgers do not leak into each other.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


_ledger_id_var: ContextVar[str] = ContextVar("ledger_id", default="")
_account_id_var: ContextVar[str] = ContextVar("account_id", default="")
_operation_var: ContextVar[str] = ContextVar("operation", default="")
_extra_context_var: ContextVar[dict] = ContextVar("extra_context", default={})


def generate_ledger_id() -> str:
    """Generate a short unique ledger id."""
    return uuid.uuid4().hex[:12]


def get_ledger_id() -> str:
    return _ledger_id_var.get()


def get_account_id() -> str:
    return _account_id_var.get()


def get_operation() -> str:
    return _operation_var.get()


def get_context_dict() -> dict[str, Any]:
    """Get all bound context as a dictionary for log binding."""
    ctx = {}
    ledger_id = _ledger_id_var.get()
    if ledger_id:
        ctx["ledger_id"] = ledger_id
    account_id = _account_id_var.get()
    if account_id:
        ctx["account_id"] = account_id
    operation = _operation_var.get()
    if operation:
        ctx["operation"] = operation
    extra = _extra_context_var.get()
    if extra:
        ctx.update(extra)
    return ctx


@dataclass
class LedgerLogContext:
    """Context manager binding ledger identity to log entries.

    Restores whatever was bound before on exit, so contexts nest.

    Example:
        with LedgerLogContext(ledger_id="a1b2", account_id="acct-1", operation="record_disposal"):
            logger.info("matched lots")  # includes ledger_id, account_id, operation
    """

    ledger_id: str = ""
    account_id: str = ""
    operation: str = ""
    extra: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    _tokens: list = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.ledger_id:
            self.ledger_id = generate_ledger_id()

    def __enter__(self) -> "LedgerLogContext":
        self._tokens = [
            (_ledger_id_var, _ledger_id_var.set(self.ledger_id)),
            (_account_id_var, _account_id_var.set(self.account_id)),
            (_operation_var, _operation_var.set(self.operation)),
            (_extra_context_var, _extra_context_var.set(self.extra.copy())),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since the context was created."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000

    def bind(self, **kwargs: Any) -> None:
        """Add extra key-value pairs to the context."""
        current = _extra_context_var.get()
        _extra_context_var.set({**current, **kwargs})
        self.extra.update(kwargs)
