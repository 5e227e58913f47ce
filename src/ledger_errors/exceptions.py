"""Ledger Exception Hierarchy.

Typed exceptions for every failure path of the engine. Each carries a
stable error code and structured details so callers can present an
actionable message without parsing strings.
"""

from typing import Any, Dict, List, Optional

from src.ledger_errors.config import ErrorCode


class LedgerError(Exception):
    """Base exception for all ledger errors.

    All engine exceptions inherit from this, allowing a single handler
    to catch the entire hierarchy.
    """

    recoverable: bool = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INVALID_ARGUMENT,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or []

    @property
    def is_recoverable(self) -> bool:
        """Whether correcting and resubmitting the request can succeed."""
        return self.recoverable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class InvalidArgument(LedgerError):
    """Raised for a malformed quantity, price, date or identifier."""

    recoverable = True

    def __init__(self, message: str = "Invalid argument", field: Optional[str] = None):
        details = [{"field": field, "issue": message}] if field else []
        super().__init__(message, ErrorCode.INVALID_ARGUMENT, details)
        self.field = field


class InsufficientInventory(LedgerError):
    """Raised when a disposal exceeds the quantity available in open lots."""

    recoverable = True

    def __init__(
        self,
        shortfall: float,
        requested: float,
        available: float,
        instrument_id: Optional[str] = None,
    ):
        message = (
            f"Insufficient inventory: requested {requested}, available {available}, "
            f"short by {shortfall}"
        )
        if instrument_id:
            message += f" for {instrument_id}"
        super().__init__(
            message,
            ErrorCode.INSUFFICIENT_INVENTORY,
            [{
                "instrument_id": instrument_id,
                "requested": requested,
                "available": available,
                "shortfall": shortfall,
            }],
        )
        self.shortfall = shortfall
        self.requested = requested
        self.available = available
        self.instrument_id = instrument_id


class EditRejected(LedgerError):
    """Raised when committing an edit that violates a validation rule."""

    recoverable = True

    def __init__(self, rejection: Any):
        super().__init__(
            rejection.message,
            ErrorCode.EDIT_REJECTED,
            [rejection.to_dict()],
        )
        self.rejection = rejection

    @property
    def rule(self):
        return self.rejection.rule

    @property
    def bound(self):
        return self.rejection.bound


class NotFound(LedgerError):
    """Raised when a record or instrument does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
    ):
        details = []
        if resource_type or resource_id is not None:
            details = [{"resource_type": resource_type, "resource_id": resource_id}]
        super().__init__(message, ErrorCode.NOT_FOUND, details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class PersistenceFailure(LedgerError):
    """Raised when the storage collaborator fails.

    The original exception is attached as ``__cause__``; callers decide
    whether to retry.
    """

    def __init__(self, message: str = "Persistence failure", cause: Optional[BaseException] = None):
        details = []
        if cause is not None:
            details = [{"cause": type(cause).__name__, "message": str(cause)}]
        super().__init__(message, ErrorCode.PERSISTENCE_FAILURE, details)
        self.cause = cause
